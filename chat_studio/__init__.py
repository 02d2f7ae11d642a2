"""Chat Studio: streaming multi-provider chat completions with tool calling."""

__version__ = "0.1.0"
