"""relay-ai.

A tool-using agent runtime over a provider-neutral LLM layer, exposed through
the Agent Client Protocol.

Packages
--------

- ``relay_ai.llm``: message model, the ``LLMProvider`` protocol, the stream
  normalizer and the Anthropic provider.
- ``relay_ai.agent_core``: tool registry, the agent loop and its builder.
- ``relay_ai.acp``: JSON-RPC server, client and transports.
- ``relay_ai.core``: settings and logging.
"""

__version__ = "0.1.0"
