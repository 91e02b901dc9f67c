"""Package marker for the chat service.

HTTP surface over the agent core: streaming chat plus one-shot agent endpoints.
"""

__version__ = "0.1.0"
