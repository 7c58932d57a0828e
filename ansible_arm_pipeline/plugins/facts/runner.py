from ansible_arm_pipeline.interfaces.runner import BaseRunner


class FactsRunner(BaseRunner):
    """
    Reads resources without changing them. Depending on the parameters given,
    it fetches one resource, lists a resource group (or a parent resource), or
    lists the whole subscription.
    """

    def execute(self):
        result = self.pipeline.list(self.module.params)

        if isinstance(result, list):
            self.module.exit_json(
                changed=False, resources=[item.to_dict() for item in result]
            )
        elif result is None:
            self.module.exit_json(changed=False, resources=[])
        else:
            # A single resource, either fetched by name or unwrapped from a
            # one-item list for resource types that ask for it.
            self.module.exit_json(changed=False, resource=result.to_dict())
