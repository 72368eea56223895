"""Watch plugin fixture that changes the configuration without focus."""

key = "z"
prompt = "focus on slow tests"


def apply(configuration):
    return {"test_name_pattern": "slow"}
