#!/usr/bin/env python3
"""Interactive chat CLI for trying the Chat Studio streaming API."""

import json
import sys
from collections.abc import Iterator
from typing import Any

import httpx
from rich.console import Console
from rich.live import Live
from rich.markdown import Markdown
from rich.panel import Panel
from rich.prompt import Prompt

from chat_studio.models.ai_models import MODEL_CONFIGS, PROVIDER_HEADER_KEYS

DEFAULT_MODEL = "Gemini 2.0 Flash"


def iter_sse_payloads(lines: Iterator[str]) -> Iterator[dict[str, Any]]:
    """Decode the JSON payload of each ``data:`` line in a server-sent event stream."""
    for line in lines:
        if line.startswith("data: "):
            yield json.loads(line[len("data: ") :])


class ChatCLI:
    """Interactive chat interface for the streaming chat endpoint."""

    def __init__(self, base_url: str = "http://localhost:8000"):
        """Initialize chat CLI."""
        self.base_url = base_url
        self.model = DEFAULT_MODEL
        self.web_search_enabled = False
        self.api_keys: dict[str, str] = {}
        self.history: list[dict[str, str]] = []
        self.console = Console()
        self.client = httpx.Client(timeout=httpx.Timeout(10.0, read=120.0))

    def start(self) -> None:
        """Start the interactive chat session."""
        self.console.print(
            Panel.fit(
                "[bold blue]Chat Studio - Interactive Chat[/bold blue]\n"
                "Type your messages to chat with the selected model.\n"
                "Commands: /help, /model, /search, /key, /clear, /quit",
                border_style="blue",
            )
        )

        if not self._test_connection():
            self.console.print(f"[red]❌ Cannot connect to the service at {self.base_url}.[/red]")
            return

        self.console.print(f"[green]✅ Connected[/green] using [bold]{self.model}[/bold]\n")

        try:
            while True:
                user_input = Prompt.ask("\n[bold cyan]You[/bold cyan]")
                command, _, argument = user_input.strip().partition(" ")

                if command.lower() in ["/quit", "/exit", "quit", "exit"]:
                    break
                elif command.lower() == "/help":
                    self._show_help()
                    continue
                elif command.lower() == "/clear":
                    self.history = []
                    self.console.print("[yellow]🔄 Conversation cleared[/yellow]")
                    continue
                elif command.lower() == "/model":
                    self._select_model(argument.strip())
                    continue
                elif command.lower() == "/search":
                    self.web_search_enabled = not self.web_search_enabled
                    state = "on" if self.web_search_enabled else "off"
                    self.console.print(f"[yellow]🔎 Web search {state}[/yellow]")
                    continue
                elif command.lower() == "/key":
                    self._set_key(argument.strip())
                    continue
                elif user_input.strip() == "":
                    continue

                self.history.append({"role": "user", "content": user_input})
                reply = self._stream_reply()
                if reply:
                    self.history.append({"role": "assistant", "content": reply})
                else:
                    self.history.pop()

        except KeyboardInterrupt:
            pass
        finally:
            self.console.print("\n[yellow]👋 Goodbye![/yellow]")
            self.client.close()

    def _test_connection(self) -> bool:
        """Test connection to the service."""
        try:
            response = self.client.get(f"{self.base_url}/health")
            return response.status_code == 200
        except httpx.HTTPError:
            return False

    def _headers(self) -> dict[str, str]:
        headers = {"Content-Type": "application/json"}
        for provider, key in self.api_keys.items():
            headers[PROVIDER_HEADER_KEYS[provider]] = key
        return headers

    def _stream_reply(self) -> str | None:
        """Post the conversation and render the streamed reply as it arrives."""
        payload = {
            "messages": self.history,
            "model": self.model,
            "webSearchEnabled": self.web_search_enabled,
        }
        text = ""
        try:
            with self.client.stream(
                "POST", f"{self.base_url}/api/chat", json=payload, headers=self._headers()
            ) as response:
                if response.status_code != 200:
                    response.read()
                    self.console.print(f"[red]❌ API Error: {response.status_code} - {response.text}[/red]")
                    return None

                with Live(Markdown(""), console=self.console, refresh_per_second=12) as live:
                    for event in iter_sse_payloads(response.iter_lines()):
                        if event["type"] == "text":
                            text += event["delta"]
                            live.update(Markdown(text))
                        elif event["type"] == "tool_call":
                            query = event["call"].get("args", {}).get("query", "")
                            self.console.print(f"[dim]🔎 Searching the web for {query!r}…[/dim]")
                        elif event["type"] == "tool_result":
                            status = "failed" if event["result"].get("isError") else "done"
                            self.console.print(f"[dim]🔎 Search {status}[/dim]")
                        elif event["type"] == "error":
                            self.console.print(f"[red]❌ {event['message']}[/red]")
                        elif event["type"] == "done":
                            break

        except httpx.HTTPError as e:
            self.console.print(f"[red]❌ Connection error: {e}[/red]")
            return None

        return text

    def _select_model(self, name: str) -> None:
        if name in MODEL_CONFIGS:
            self.model = name
            self.console.print(f"[yellow]🔄 Using {name}[/yellow]")
            return

        model_list = "\n".join(f"• {model}" for model in MODEL_CONFIGS)
        self.console.print(Panel(model_list, title="[yellow]Available models[/yellow]", border_style="yellow"))

    def _set_key(self, argument: str) -> None:
        provider, _, key = argument.partition(" ")
        if provider not in PROVIDER_HEADER_KEYS or not key.strip():
            self.console.print(f"[red]Usage: /key <{'|'.join(PROVIDER_HEADER_KEYS)}> <api key>[/red]")
            return
        self.api_keys[provider] = key.strip()
        self.console.print(f"[yellow]🔑 {provider} key set[/yellow]")

    def _show_help(self) -> None:
        """Show help information."""
        help_text = """
[bold]Available Commands:[/bold]
• /help - Show this help message
• /model [name] - Switch model, or list models when no name is given
• /search - Toggle the web search tool
• /key <provider> <key> - Send your own API key for a provider
• /clear - Clear the conversation
• /quit or /exit - Exit the chat

[bold]Tips:[/bold]
• Without a key of your own the server's host keys are used
• Models without a direct key fall back to OpenRouter when an OpenRouter key exists
        """

        self.console.print(Panel(help_text.strip(), title="[cyan]❓ Help[/cyan]", border_style="cyan"))


def main():
    """Main entry point for the chat CLI."""
    base_url = sys.argv[1] if len(sys.argv) > 1 else "http://localhost:8000"

    chat = ChatCLI(base_url)
    chat.start()


if __name__ == "__main__":
    main()
