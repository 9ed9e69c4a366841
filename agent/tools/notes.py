"""Note-taking tools backed by the key-value store."""

import json
import logging
from datetime import datetime
from typing import Dict, List

from storage.kv import KeyValueStore

logger = logging.getLogger(__name__)

NOTES_KEY = "notes"


async def load_notes(store: KeyValueStore) -> List[Dict[str, str]]:
    raw = await store.get(NOTES_KEY)
    if not raw:
        return []
    try:
        notes = json.loads(raw)
    except json.JSONDecodeError:
        logger.warning("Stored notes are corrupt, ignoring them")
        return []
    return notes if isinstance(notes, list) else []


class SaveNoteTool:
    """Tool for saving a titled note."""

    def __init__(self, store: KeyValueStore):
        self.name = "save_note"
        self.description = "Save a note with a title and content for later"
        self.parameters = {
            "type": "object",
            "properties": {
                "title": {"type": "string", "description": "Note title"},
                "content": {"type": "string", "description": "Note content"},
            },
            "required": ["title", "content"],
        }
        self.store = store

    async def run(self, title: str, content: str) -> str:
        """Append a note.

        Args:
            title: Note title
            content: Note body

        Returns:
            Confirmation message
        """
        notes = await load_notes(self.store)
        notes.append(
            {
                "title": title,
                "content": content,
                "created_at": datetime.now().astimezone().isoformat(),
            }
        )
        await self.store.set(NOTES_KEY, json.dumps(notes))

        logger.info(f"Saved note: {title}")
        return f"Note '{title}' saved successfully"


class ReadNotesTool:
    """Tool for reading every saved note."""

    def __init__(self, store: KeyValueStore):
        self.name = "read_notes"
        self.description = "Read all saved notes"
        self.parameters = {"type": "object", "properties": {}}
        self.store = store

    async def run(self) -> str:
        notes = await load_notes(self.store)
        if not notes:
            return "No notes found"

        return "\n\n---\n\n".join(
            f"Title: {note.get('title', '')}\n"
            f"Content: {note.get('content', '')}\n"
            f"Created: {note.get('created_at', '')}"
            for note in notes
        )
