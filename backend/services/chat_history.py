"""Chat audit log: every answered question with the chunks and prompt behind it."""
import logging
from datetime import datetime
from typing import List, Optional
from supabase import create_client, Client

from models.chat import ChatTurn, RetrievalType
from config import SUPABASE_URL, SUPABASE_KEY

logger = logging.getLogger(__name__)


class ChatHistory:
    """Append-only storage of ChatTurns using Supabase PostgreSQL."""

    def __init__(
        self,
        supabase_url: Optional[str] = SUPABASE_URL,
        supabase_key: Optional[str] = SUPABASE_KEY,
        client: Optional[Client] = None
    ):
        """Initialize the chat history with a Supabase client."""
        if client is None:
            if not supabase_url or not supabase_key:
                raise ValueError("SUPABASE_URL and SUPABASE_KEY must be set in environment variables")
            client = create_client(supabase_url, supabase_key)

        self.client: Client = client
        logger.info("ChatHistory initialized with Supabase")

    def record(self, turn: ChatTurn) -> str:
        """
        Persist one answered question.

        Writes the session row with its retrieval type, one ``chat_chunks`` row
        per cited chunk with its rank, and the exact prompt the model saw. If a
        later write fails the rows already written are removed again.

        Args:
            turn: The answered question

        Returns:
            The id of the stored chat session

        Raises:
            RuntimeError: If any write fails
        """
        try:
            session = self.client.table("chat_sessions").insert({
                "book_id": turn.book_id,
                "question": turn.question,
                "llm_response": turn.answer,
                "retrieval_type": turn.retrieval_type.value,
                "created_at": datetime.now().isoformat()
            }).execute()
            chat_id = session.data[0]["id"]
        except Exception as e:
            error_msg = f"Failed to record chat for book {turn.book_id}: {str(e)}"
            logger.error(error_msg)
            raise RuntimeError(error_msg)

        try:
            if turn.cited_chunk_ids:
                self.client.table("chat_chunks").insert([
                    {
                        "chat_id": chat_id,
                        "chunk_id": chunk_id,
                        "rank": rank,
                        "retrieval_type": turn.retrieval_type.value
                    }
                    for rank, chunk_id in enumerate(turn.cited_chunk_ids)
                ]).execute()

            self.client.table("llm_prompts").insert({
                "chat_id": chat_id,
                "system_prompt": turn.system_prompt,
                "context_chunks": list(turn.cited_chunk_ids),
                "final_prompt": turn.prompt_used
            }).execute()

            logger.info(
                f"Recorded {turn.retrieval_type.value} chat {chat_id} for book {turn.book_id} "
                f"citing {len(turn.cited_chunk_ids)} chunks"
            )
            return chat_id
        except Exception as e:
            error_msg = f"Failed to record chat {chat_id} for book {turn.book_id}: {str(e)}"
            logger.error(error_msg)
            self._discard(chat_id)
            raise RuntimeError(error_msg)

    def _discard(self, chat_id: str) -> None:
        """Remove the rows of a partially recorded chat."""
        for table in ("llm_prompts", "chat_chunks"):
            try:
                self.client.table(table).delete().eq("chat_id", chat_id).execute()
            except Exception as e:
                logger.error(f"Failed to clean up {table} rows of chat {chat_id}: {e}")
        try:
            self.client.table("chat_sessions").delete().eq("id", chat_id).execute()
        except Exception as e:
            logger.error(f"Failed to clean up chat session {chat_id}: {e}")

    def list_turns(self, book_id: str, limit: Optional[int] = None) -> List[ChatTurn]:
        """
        Stored turns of a book, oldest first.

        Args:
            book_id: Book whose chats to load
            limit: Optional limit on number of turns (most recent)

        Returns:
            ChatTurns with cited chunks in rank order
        """
        result = (
            self.client.table("chat_sessions")
            .select("*, chat_chunks(chunk_id, rank, retrieval_type), llm_prompts(system_prompt, final_prompt)")
            .eq("book_id", book_id)
            .order("created_at", desc=False)
            .execute()
        )
        rows = result.data or []
        if limit:
            rows = rows[-limit:]

        turns = []
        for row in rows:
            cited = sorted(row.get("chat_chunks") or [], key=lambda c: c["rank"])
            prompts = row.get("llm_prompts") or [{}]
            # Sessions recorded before the column existed fall back to their chunk rows
            retrieval_type = row.get("retrieval_type") or (
                cited[0]["retrieval_type"] if cited else RetrievalType.STANDARD.value
            )
            turns.append(ChatTurn(
                id=row["id"],
                book_id=row["book_id"],
                question=row["question"],
                answer=row["llm_response"],
                retrieval_type=RetrievalType(retrieval_type),
                cited_chunk_ids=tuple(c["chunk_id"] for c in cited),
                prompt_used=prompts[0].get("final_prompt", ""),
                system_prompt=prompts[0].get("system_prompt", "")
            ))

        logger.debug(f"Loaded {len(turns)} chats for book {book_id}")
        return turns
