"""
Fixed reply texts and the system prompt given to the LLM extractor.

Replies produced here never contain internal error details; they are
what the customer sees when a turn degrades.
"""

CLARIFICATION_REPLY = (
    "Sorry, I didn't quite catch that. Could you please repeat or rephrase it?"
)

APOLOGY_REPLY = (
    "I'm sorry, something went wrong on our side. Could you please send that again?"
)

DEFAULT_FINAL_MESSAGE = (
    "Thank you, I have everything I need. We'll take it from here."
)

GENERIC_FIELD_PROMPT = "Could you please tell me your {missing_fields}?"

CONTINUE_REPLY = "Thanks. Is there anything else you would like to add?"

EXTRACTION_SYSTEM_PROMPT = """
You extract structured fields from a customer's message in an ongoing
conversation with a health insurance assistant.

RULES:
- Return a single JSON object with exactly two keys: "extractedFields" and "candidateReply".
- "extractedFields" maps field names to values. Only use the field names listed
  under TARGET FIELDS. Never invent other keys.
- Leave a field out entirely if the customer did not clearly provide it.
  Do not return null, empty strings or guesses.
- Boolean fields take JSON true or false. Number fields take JSON numbers.
  Choice fields take one of the listed choices exactly as written.
- Use the conversation history only to resolve references ("yes", "that one",
  "for her"); the latest customer message is what you extract from.
- "candidateReply" is one short, friendly message to send next. If any target
  field is still missing, it must ask for it with a question.
"""
