"""CLI interface for Kioku."""

from pathlib import Path

from .chat import ChatError, ChatService
from .config import default_config_path, kioku_home, load_settings, save_settings
from .conversation import Conversation, ConversationStore
from .logging import configure_logger, get_logger
from .memory import FactExtractor, MemoryManager, MemoryStore, RollingSynthesizer
from .providers import ProviderRegistry
from .reminders import ReminderStore

BANNER = """
╔══════════════════════════════════════════╗
║              Kioku v0.1.0                ║
║      Personal assistant with memory      ║
╚══════════════════════════════════════════╝

Commands:
  /new                      - Start a new conversation
  /chats                    - List stored conversations
  /open <id>                - Switch to a conversation
  /delete <id>              - Delete a conversation
  /facts                    - Show what I remember about you
  /remember <key> = <value> - Store a fact
  /forget <key>             - Remove a fact
  /reminders                - List pending reminders
  /done <id>                - Mark a reminder as done
  /provider <name> [key]    - Switch provider (groq, openai, anthropic, gemini, local)
  /summary                  - Summarize this conversation
  /help                     - Show this help
  /exit, /quit              - Exit

Type your message and press Enter.
"""


def default_db_path() -> Path:
    return kioku_home() / "kioku.db"


class CLI:
    """Interactive command-line interface for Kioku."""

    def __init__(
        self,
        db_path: Path | None = None,
        config_path: Path | None = None,
        registry: ProviderRegistry | None = None,
    ) -> None:
        self.config_path = config_path or default_config_path()
        settings = load_settings(self.config_path)

        db_path = db_path or default_db_path()
        self.memory_store = MemoryStore(db_path)
        self.memory_store.init_db()
        self.conversations = ConversationStore(db_path)
        self.conversations.init_db()
        self.reminders = ReminderStore(db_path)
        self.reminders.init_db()

        self.logger = get_logger()
        self.registry = registry or ProviderRegistry(config_path=self.config_path)
        self.memory = MemoryManager(self.memory_store)
        synthesizer = RollingSynthesizer(
            self.conversations,
            self.memory_store,
            FactExtractor(self.registry),
            event_log=self.logger,
        )
        self.chat = ChatService(
            self.registry,
            self.conversations,
            self.memory,
            self.reminders,
            synthesizer=synthesizer,
            event_log=self.logger,
            date_locales=settings.date_locales or None,
        )
        self.conversation_id = self._open(self.conversations.resume())

    def _open(self, conversation: Conversation) -> int:
        self.logger.log("session_start", conversation_id=conversation.id)
        return conversation.id

    def _new_conversation(self) -> int:
        return self._open(self.conversations.start_new())

    def _show_conversations(self) -> None:
        print()
        for conversation in self.conversations.list_all():
            marker = "*" if conversation.id == self.conversation_id else " "
            count = self.conversations.count_messages(conversation.id)
            print(f" {marker}[{conversation.id}] {conversation.title} ({count} messages)")

    def _open_conversation(self, conversation_id: int) -> None:
        conversation = self.conversations.get(conversation_id)
        if conversation is None:
            print(f"\nNo conversation with id {conversation_id}")
            return
        self.conversation_id = self._open(conversation)
        print(f"\n✓ Switched to #{conversation.id}: {conversation.title}")

    def _delete_conversation(self, conversation_id: int) -> None:
        if not self.conversations.delete(conversation_id):
            print(f"\nNo conversation with id {conversation_id}")
            return
        print(f"\n✓ Deleted conversation #{conversation_id}")
        if conversation_id == self.conversation_id:
            self.conversation_id = self._new_conversation()
            print(f"✓ Now in conversation #{self.conversation_id}")

    async def _process_message(self, message: str) -> None:
        """Send a message and stream the reply to stdout."""
        printed = 0

        def show(cumulative: str) -> None:
            nonlocal printed
            print(cumulative[printed:], end="", flush=True)
            printed = len(cumulative)

        print("\n" + "─" * 40)
        try:
            result = await self.chat.send(self.conversation_id, message, on_update=show)
        except ChatError as e:
            print(f"\n❌ Connection failed: {e}")
            print(f"   Suggestion: {e.diagnosis}")
            return
        print("\n" + "─" * 40)

        if result.explicit_fact:
            print(f"📝 Remembered: {result.explicit_fact.key} → {result.explicit_fact.value}")
        if result.reminder:
            due = result.reminder.due_at.strftime("%Y-%m-%d %H:%M")
            print(f"⏰ Reminder set: {result.reminder.text} at {due}")
        if result.synthesis and result.synthesis.facts:
            print(f"🧠 Learned {len(result.synthesis.facts)} new fact(s)")

    def _show_facts(self) -> None:
        facts = self.memory.load_all()
        if not facts:
            print("\nI don't remember anything about you yet.")
            return
        print()
        for fact in facts:
            print(f"  {fact.key}: {fact.value}")

    def _show_reminders(self) -> None:
        reminders = self.reminders.list_all()
        if not reminders:
            print("\nNo pending reminders.")
            return
        print()
        for reminder in reminders:
            flag = " (overdue)" if reminder.is_overdue() else ""
            due = reminder.due_at.strftime("%Y-%m-%d %H:%M")
            print(f"  [{reminder.id}] {reminder.text} at {due}{flag}")

    def _switch_provider(self, args: list[str]) -> None:
        if not args:
            current = self.registry.active_name or "none"
            print(f"\nActive provider: {current}")
            return

        settings = load_settings(self.config_path)
        settings.provider = args[0].lower()
        if len(args) > 1:
            settings.api_keys[settings.provider] = args[1]
        save_settings(settings, self.config_path)

        for name in settings.env_overrides():
            print(f"\n⚠ {name} is set in the environment and overrides the saved setting")

        provider = self.registry.reload()
        self.logger.log("provider_reload", provider=self.registry.active_name)
        if provider is None:
            print(f"\n⚠ Provider '{settings.provider}' is not configured (missing API key?)")
        else:
            print(f"\n✓ Using {provider.name}")

    async def _handle_command(self, command: str) -> bool:
        """Handle a slash command. Returns False to exit."""
        parts = command.strip().split()
        cmd = parts[0].lower()
        args = parts[1:]

        if cmd in ("/exit", "/quit", "exit", "quit"):
            print("\n👋 Goodbye!")
            self.logger.log("session_end", conversation_id=self.conversation_id)
            return False

        if cmd == "/new":
            self.conversation_id = self._new_conversation()
            print(f"\n✓ New conversation #{self.conversation_id}")
        elif cmd == "/chats":
            self._show_conversations()
        elif cmd == "/open" and args and args[0].isdigit():
            self._open_conversation(int(args[0]))
        elif cmd == "/delete" and args and args[0].isdigit():
            self._delete_conversation(int(args[0]))
        elif cmd == "/facts":
            self._show_facts()
        elif cmd == "/remember":
            key, _, value = command.partition(" ")[2].partition("=")
            try:
                fact = self.memory.remember(key, value)
                print(f"\n📝 Remembered: {fact.key} → {fact.value}")
            except ValueError as e:
                print(f"\n⚠ {e}")
        elif cmd == "/forget" and args:
            if self.memory.forget(" ".join(args)):
                print(f"\n✓ Forgot '{' '.join(args)}'")
            else:
                print(f"\nI had nothing stored under '{' '.join(args)}'")
        elif cmd == "/reminders":
            self._show_reminders()
        elif cmd == "/done" and args and args[0].isdigit():
            if self.reminders.complete(int(args[0])):
                print(f"\n✓ Reminder {args[0]} done")
            else:
                print(f"\nNo reminder with id {args[0]}")
        elif cmd == "/provider":
            self._switch_provider(args)
        elif cmd == "/summary":
            print("\n" + await self.chat.summarize(self.conversation_id))
        elif cmd == "/help":
            print(BANNER)

        return True

    async def run(self) -> None:
        """Run the interactive CLI."""
        print(BANNER)
        if not self.registry.is_ready():
            print("⚠ No AI provider configured. Use /provider <name> <api-key>.\n")
        else:
            print(f"Provider: {self.registry.active_name}\n")

        overdue = self.reminders.overdue()
        if overdue:
            print(f"⏰ You have {len(overdue)} overdue reminder(s). Type /reminders.\n")

        try:
            while True:
                try:
                    user_input = input("you> ").strip()

                    if not user_input:
                        continue

                    if user_input.startswith("/") or user_input.lower() in ("exit", "quit"):
                        if not await self._handle_command(user_input):
                            break
                        continue

                    await self._process_message(user_input)

                except KeyboardInterrupt:
                    print("\n\n👋 Goodbye!")
                    break
                except EOFError:
                    print("\n👋 Goodbye!")
                    break
        finally:
            self.memory_store.close()
            self.conversations.close()
            self.reminders.close()
            await self.registry.aclose()


def print_reminders(db_path: Path | None = None) -> None:
    """Print pending reminders and exit."""
    store = ReminderStore(db_path or default_db_path())
    store.init_db()
    try:
        reminders = store.list_all()
        if not reminders:
            print("No pending reminders.")
        for reminder in reminders:
            flag = " (overdue)" if reminder.is_overdue() else ""
            print(f"[{reminder.id}] {reminder.text} at {reminder.due_at:%Y-%m-%d %H:%M}{flag}")
    finally:
        store.close()


async def run_cli() -> None:
    """Run the CLI with default configuration."""
    configure_logger()
    cli = CLI()
    await cli.run()
