"""Runtime composition for the round engine.

`bots.config` reads the environment; `bots.runtime` wires discord.py,
DynamoDB and the engine components together.
"""

__all__ = ["config", "runtime"]
