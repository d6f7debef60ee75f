"""Prompt pools for the generative message source."""

NUDGE_PROMPTS = {
    "friendly": "Send a friendly greeting message to check on someone.",
    "motivational": "Write a short motivational message to encourage someone.",
    "casual": "Send a casual check-in message.",
    "supportive": "Write a supportive message for someone who might be stressed.",
    "reminder": "Send a gentle reminder message to get back to work.",
}

SYSTEM_PROMPTS = {
    "default": "You are a helpful assistant that sends friendly messages.",
    "casual": "You are a casual friend sending a quick check-in message.",
    "supportive": "You are a supportive friend offering encouragement.",
}

STYLE_RULES = (
    "Reply with the message text only: one or two sentences, no quotes, "
    "no preamble, no sign-off."
)

HISTORY_INSTRUCTION = (
    "You already sent these messages:\n{history}\n\n"
    "Do not repeat them or write anything too similar. Be creative.\n\n"
)
