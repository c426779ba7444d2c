"""Prompt template for RAG."""


class RAGPromptTemplate:
    """Formats retrieved context and a question into one prompt.

    The context block always precedes the question. With no context the
    question is asked on its own.
    """

    CONTEXT_TEMPLATE = """Context:
{context}

Question: {question}

Answer based on the provided context:"""

    NO_CONTEXT_TEMPLATE = """Question: {question}

Answer:"""

    SEPARATOR = "\n\n"

    def __init__(
        self,
        system_prompt: str | None = None,
        max_context_chars: int = 8000,
    ) -> None:
        """Initialize the RAG prompt template.

        Args:
            system_prompt: Optional system prompt sent with every query.
            max_context_chars: Upper bound on the context block length.
        """
        self.system_prompt = system_prompt
        self.max_context_chars = max_context_chars

    def format_context(self, chunks: list[str]) -> str:
        """Join chunks in order, truncating at the character budget."""
        parts: list[str] = []
        used = 0
        for chunk in chunks:
            cost = len(chunk) + (len(self.SEPARATOR) if parts else 0)
            if used + cost > self.max_context_chars:
                remaining = self.max_context_chars - used - (len(self.SEPARATOR) if parts else 0)
                if remaining > 0:
                    parts.append(chunk[:remaining])
                break
            parts.append(chunk)
            used += cost
        return self.SEPARATOR.join(parts)

    def build_prompt(self, question: str, chunks: list[str]) -> str:
        """Build the generation prompt.

        Args:
            question: User question.
            chunks: Retrieved contents in ranked order.

        Returns:
            Prompt with the context block followed by the question.
        """
        context = self.format_context(chunks)
        if not context:
            return self.NO_CONTEXT_TEMPLATE.format(question=question)
        return self.CONTEXT_TEMPLATE.format(context=context, question=question)
