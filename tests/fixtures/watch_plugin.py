"""Watch plugin fixture that takes focus and does nothing."""

key = ord("s")
prompt = "do nothing"

calls = []


def enter(configuration, end):
    calls.append((configuration, end))
