from ansible_arm_pipeline.interfaces.runner import BaseRunner


class CrudRunner(BaseRunner):
    """
    Handles the core execution logic for a resource module with
    `state: present` / `state: absent` semantics.

    The flow for every run is:
    - Look the resource up (a missing resource is not an error here).
    - Reconcile and build the desired request, so that invalid input fails
      before any mutating call.
    - Create, update or delete only when the desired state differs.
    """

    def execute(self):
        # Step 1: Determine the current state of the resource.
        self.check_existence()

        # Step 2: If in check mode, predict changes without making them.
        if self.module.check_mode:
            self.handle_check_mode()
            return

        # Step 3: Execute actions based on current state and desired state.
        if self.module.params["state"] == "present":
            self.create_or_update()
        elif self.resource:
            self.delete()

        # Step 4: Exit the module with the final state.
        self.exit()

    def check_existence(self):
        """Fetches the resource, treating "not found" as absent."""
        self.resource = self.pipeline.get(self.module.params, missing_ok=True)

    def create_or_update(self):
        """
        Sends a create-or-update request when the resource is missing or when
        the built body differs from the current resource.
        """
        canonical, body = self.pipeline.prepare(self.module.params)
        if self.resource and not self._differs(
            self._comparable_body(body), self.resource.to_dict()
        ):
            return

        result = self.pipeline.apply(canonical, body)
        self.has_changed = True
        if result is None:
            self.module.warn(
                f"The operation on '{canonical.identity.name}' is still in progress."
            )
        self.resource = result

    def delete(self):
        """Deletes the resource found by `check_existence`."""
        if self.resource:
            self.pipeline.delete(self.module.params)
            self.has_changed = True
            self.resource = None  # The resource is now gone.

    def handle_check_mode(self):
        """Predicts changes for Ansible's --check mode without mutating calls."""
        state = self.module.params["state"]
        if state == "present":
            _, body = self.pipeline.prepare(self.module.params)
            if not self.resource or self._differs(
                self._comparable_body(body), self.resource.to_dict()
            ):
                self.has_changed = True
        elif state == "absent" and self.resource:
            self.has_changed = True

        self.exit()

    def exit(self):
        """Formats the final response and exits the module execution."""
        self.module.exit_json(
            changed=self.has_changed,
            resource=self.resource.to_dict() if self.resource else None,
        )
