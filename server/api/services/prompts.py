"""Prompt templates for folder-scoped question answering."""

FOLDER_QUERY_PROMPT = (
    "Based on the following information:\n"
    "{context}\n"
    "Please answer the question: {query}\n"
    "Answer only from the information above. "
    "If the information is not present in the provided context, say so."
)


def build_context(chunks: list[str]) -> str:
    """Join retrieved chunk texts nearest first, each followed by a line break."""
    return "".join(f"{chunk}\n" for chunk in chunks)


def build_folder_query_prompt(context: str, query: str) -> str:
    return FOLDER_QUERY_PROMPT.format(context=context, query=query)
