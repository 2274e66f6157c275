#!/usr/bin/env python3
"""
TaskNotes Chat Interactive CLI

Sends messages to a running chat server and prints the streamed reply:
assistant text inline, tool activity and citations as annotations.
"""

import argparse
import json
import logging
import os
import sys
from typing import Iterator, Optional

import requests

from .config import config
from .orchestration import (
    ContentEvent,
    ConversationEvent,
    DoneEvent,
    ErrorEvent,
    SourcesEvent,
    ToolCallEvent,
    ToolCallStartEvent,
    ToolResultEvent,
    TurnEvent,
    decode_stream,
)

logger = logging.getLogger(__name__)

DEFAULT_SERVER_URL = os.getenv("CHAT_SERVER_URL", f"http://localhost:{config.server.port}")


def setup_logging(verbose: bool = False) -> None:
    """Configure logging based on verbosity level."""
    level = logging.DEBUG if verbose else logging.WARNING
    logging.basicConfig(
        level=level,
        format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
        handlers=[logging.StreamHandler(sys.stderr)],
    )


class ChatClient:
    """Minimal client for the streaming chat endpoints."""

    def __init__(
        self,
        server_url: str = DEFAULT_SERVER_URL,
        user_id: str = "cli-user",
        model: Optional[str] = None,
        mode: str = "agent",
        conversation_id: Optional[str] = None,
        timeout: float = 300.0,
    ):
        self.server_url = server_url.rstrip("/")
        self.user_id = user_id
        self.model = model or config.model.default_model
        self.mode = mode
        self.conversation_id = conversation_id
        self.timeout = timeout

    def send(self, message: str, context: Optional[dict] = None) -> Iterator[TurnEvent]:
        """Post a message and yield decoded events, remembering a new conversation id."""
        body: dict = {"message": message, "model": self.model}
        if self.conversation_id:
            body["conversationId"] = self.conversation_id
        if context:
            body["context"] = context

        with requests.post(
            f"{self.server_url}/api/chat/{self.mode}",
            json=body,
            headers={"X-User-Id": self.user_id, "Accept": "text/event-stream"},
            stream=True,
            timeout=self.timeout,
        ) as response:
            if response.status_code >= 400:
                raise RuntimeError(_error_message(response))
            for event in decode_stream(response.iter_lines(decode_unicode=True)):
                if isinstance(event, ConversationEvent):
                    self.conversation_id = event.conversation_id
                yield event

    def new_conversation(self) -> None:
        self.conversation_id = None


def _error_message(response: requests.Response) -> str:
    try:
        return f"HTTP {response.status_code}: {response.json().get('message', response.text)}"
    except ValueError:
        return f"HTTP {response.status_code}: {response.text}"


def render_event(event: TurnEvent, verbose: bool = False) -> None:
    """Print one event: content to stdout, everything else as annotations on stderr."""
    if isinstance(event, ContentEvent):
        sys.stdout.write(event.delta)
        sys.stdout.flush()
    elif isinstance(event, ConversationEvent):
        print(f"[conversation {event.conversation_id}]", file=sys.stderr)
    elif isinstance(event, ToolCallStartEvent):
        if verbose:
            print(f"\n[tool {event.name} starting]", file=sys.stderr)
    elif isinstance(event, ToolCallEvent):
        print(f"\n[tool {event.name} {json.dumps(event.args)}]", file=sys.stderr)
    elif isinstance(event, ToolResultEvent):
        if verbose:
            result = event.result if len(event.result) <= 200 else event.result[:200] + "..."
            print(f"[result {event.name}] {result}", file=sys.stderr)
    elif isinstance(event, SourcesEvent):
        print("\n\nSources:", file=sys.stderr)
        for source in event.sources:
            print(f"  - {source['title']} ({source['id']})", file=sys.stderr)
    elif isinstance(event, DoneEvent):
        print()
    elif isinstance(event, ErrorEvent):
        print(f"\nError: {event.message}", file=sys.stderr)


def print_banner(client: ChatClient) -> None:
    """Print the welcome banner."""
    print(
        f"""
TaskNotes Chat ({client.server_url})
  mode: {client.mode}   model: {client.model}

Available commands:
  /help          - Show this help message
  /mode          - Switch between ask and agent mode
  /model <name>  - Use a different model
  /new           - Start a new conversation
  /quit          - Exit the CLI
"""
    )


class InteractiveCLI:
    """Read-eval-print loop over a ChatClient."""

    def __init__(self, client: ChatClient, verbose: bool = False):
        self.client = client
        self.verbose = verbose

    def process_message(self, message: str) -> None:
        try:
            for event in self.client.send(message):
                render_event(event, self.verbose)
        except (requests.exceptions.RequestException, RuntimeError) as e:
            print(f"\nError: {e}\n", file=sys.stderr)

    def handle_command(self, command: str) -> bool:
        """Run a slash command. Returns False when the CLI should exit."""
        name, _, argument = command.partition(" ")
        name = name.lower()
        if name in ("/quit", "/exit", "/q"):
            print("\nGoodbye!\n")
            return False
        if name in ("/help", "/h", "/?"):
            print_banner(self.client)
        elif name == "/mode":
            self.client.mode = "ask" if self.client.mode == "agent" else "agent"
            print(f"\nMode: {self.client.mode}\n")
        elif name == "/model":
            if argument.strip():
                self.client.model = argument.strip()
            print(f"\nModel: {self.client.model}\n")
        elif name == "/new":
            self.client.new_conversation()
            print("\nStarted a new conversation.\n")
        else:
            print(f"\nUnknown command: {command}")
            print("Type /help for available commands.\n")
        return True

    def run(self) -> None:
        print_banner(self.client)
        while True:
            try:
                user_input = input(">>> ").strip()
            except KeyboardInterrupt:
                print("\n\nType /quit to exit.\n")
                continue
            except EOFError:
                print("\nGoodbye!\n")
                break

            if not user_input:
                continue
            if user_input.startswith("/"):
                if not self.handle_command(user_input):
                    break
                continue
            try:
                self.process_message(user_input)
            except KeyboardInterrupt:
                print("\n\nInterrupted.\n")


def main() -> None:
    """Main entry point."""
    parser = argparse.ArgumentParser(
        description="TaskNotes Chat Interactive CLI",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Examples:
  %(prog)s                                 # Start interactive mode
  %(prog)s -q "find the wifi password"     # Send one message and exit
  %(prog)s --mode ask -q "hello" --json    # Print raw events as JSON lines
""",
    )
    parser.add_argument("-v", "--verbose", action="store_true", help="Show tool results and debug logging")
    parser.add_argument("-q", "--query", type=str, help="Send a single message and exit")
    parser.add_argument("--server-url", default=DEFAULT_SERVER_URL, help=f"Chat server URL (default: {DEFAULT_SERVER_URL})")
    parser.add_argument("--user-id", default=os.getenv("CHAT_USER_ID", "cli-user"), help="Value for the X-User-Id header")
    parser.add_argument("--mode", choices=("ask", "agent"), default="agent", help="Chat mode (default: agent)")
    parser.add_argument("--model", default=None, help=f"Model name (default: {config.model.default_model})")
    parser.add_argument("--conversation", default=None, help="Continue an existing conversation id")
    parser.add_argument("--json", action="store_true", help="Print events as JSON lines (single query mode)")

    args = parser.parse_args()
    setup_logging(args.verbose)

    client = ChatClient(
        server_url=args.server_url,
        user_id=args.user_id,
        model=args.model,
        mode=args.mode,
        conversation_id=args.conversation,
    )

    if not args.query:
        InteractiveCLI(client, verbose=args.verbose).run()
        return

    try:
        for event in client.send(args.query):
            if args.json:
                print(json.dumps({"type": event.type, **event.payload()}))
            else:
                render_event(event, args.verbose)
    except (requests.exceptions.RequestException, RuntimeError) as e:
        print(f"Error: {e}", file=sys.stderr)
        sys.exit(1)


if __name__ == "__main__":
    main()
