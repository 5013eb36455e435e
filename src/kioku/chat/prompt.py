"""Prompt builder for the chat service."""

from datetime import datetime

SYSTEM_PROMPT_BASE = """You are Kioku, a high-productivity AI memory assistant.
Use Markdown for formatting.

Core capabilities:
1. Conversation: answer naturally and concisely.
2. Memory: you learn facts and preferences about the user from conversation. Users can also say "Remember that ..." to store something explicitly.
3. Reminders: when the user asks to be reminded of something, include the exact tag [REMINDER: "description" AT "YYYY-MM-DD HH:MM"] in your reply. Compute the time from the user's local time given below.

Always guide users on how to use these features when asked."""

SUMMARY_SYSTEM_PROMPT = "You are a helpful summarizer."

SUMMARY_PROMPT = (
    "Summarize the key takeaways from this conversation into a single sentence:\n"
)


def build_system_prompt(memory_block: str = "", now: datetime | None = None) -> str:
    """Build the system prompt with stored facts and local time.

    Args:
        memory_block: Formatted user facts, or empty.
        now: Local time to report; defaults to the current time.

    Returns:
        Complete system prompt string.
    """
    now = now or datetime.now().astimezone()

    context = ["Context:"]
    if memory_block.strip():
        context.append(memory_block)
    context.append(
        "Device Context:\n"
        f"* Local Time: {now.strftime('%Y-%m-%d %H:%M')}\n"
        f"* Timezone: {now.tzname() or 'unknown'}\n"
        f"* ISO Time: {now.isoformat()}"
    )

    return SYSTEM_PROMPT_BASE + "\n\n" + "\n\n".join(context)


def diagnose(error_message: str) -> str:
    """Suggest a fix for a failed send based on its error text."""
    lowered = error_message.lower()
    if "no ai provider configured" in lowered:
        return "Choose a provider and add its API key with /provider <name> <api-key>."
    if "network" in lowered or "connect" in lowered or "timed out" in lowered:
        return (
            "The provider could not be reached. Check your internet connection, "
            "or that your local model server is running."
        )
    if "401" in error_message or "unauthorized" in lowered or "invalid api key" in lowered:
        return "Your API key appears to be invalid or expired. Please check your settings."
    if "429" in error_message or "rate limit" in lowered:
        return "Rate limit exceeded. Please wait a moment or try a different provider."
    return "Please check your API key and internet connection."
