from __future__ import annotations

# Published after every change to the message list; views re-render on it.
CONVERSATION_UPDATED = "conversation.updated"
CONVERSATION_RESET = "conversation.reset"
TURN_STARTED = "turn.started"
TURN_FINISHED = "turn.finished"
