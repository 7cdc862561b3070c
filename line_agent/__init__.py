"""
LINE School Assistant

Natural-language LINE agent for a school's operations: it interprets a
staff member's Thai text or image message, picks one of a fixed set of
actions (room schedule and booking, repair tickets, photo gallery, daily
summary, FAQ), validates the extracted arguments, runs the action and
replies with text or a flex card.

Structure:
- config.py: environment settings
- schemas/: pydantic models
- llm/: prompts, model boundary, intent extraction, phrasing
- agents/: registry, actions, dispatcher, renderer
- algorithms/: candidate ranking
- interfaces/: document store, identity, conversation memory, LINE API
- api/: webhook router
"""

__version__ = "1.0.0"
