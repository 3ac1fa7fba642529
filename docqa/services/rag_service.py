import logging
import time

from docqa.core.errors import DocQAError
from docqa.core.models import DocumentStatus, Query, QueryRequest, QuerySource
from docqa.core.retry import RetryPolicy, retry_with_policy
from docqa.services.citation_service import build_context, format_sources

logger = logging.getLogger(__name__)

NO_CONTEXT_ANSWER = (
    "I could not find any relevant passages in the selected documents, "
    "so I can't answer this question from them."
)

UNCERTAIN_MARKERS = ("don't know", "not enough information")


def build_prompt(question: str, context: str) -> str:
    system = (
        "You are a document assistant. Answer the QUESTION using only the CONTEXT passages. "
        "Cite the passages you use like [1], [2]. "
        "If the CONTEXT does not contain the answer, say that there is not enough information "
        "in the documents instead of guessing."
    )
    return f"""{system}

QUESTION:
{question}

CONTEXT:
{context}

ANSWER:"""


def calculate_confidence(answer: str, sources: list[QuerySource]) -> float:
    if not sources:
        return 0.3
    lowered = answer.lower()
    if any(m in lowered for m in UNCERTAIN_MARKERS):
        return 0.2
    return min(0.9, 0.5 + len(sources) * 0.1)


class QueryService:
    def __init__(
        self,
        store,
        retriever,
        llm,
        policy: RetryPolicy | None = None,
        max_query_length: int = 1000,
        snippet_chars: int = 600,
    ):
        self.store = store
        self.retriever = retriever
        self.llm = llm
        self.policy = policy or RetryPolicy()
        self.max_query_length = max_query_length
        self.snippet_chars = snippet_chars

    def validate_question(self, question: str) -> str:
        q = (question or "").strip()
        if not q:
            raise DocQAError.validation("Query cannot be empty", "question")
        if len(q) > self.max_query_length:
            raise DocQAError.validation(
                f"Query is too long (max {self.max_query_length} characters)", "question"
            )
        return q

    def _processed_names(self, document_ids: list[str] | None) -> dict[str, str]:
        docs = self.store.list_documents(status=DocumentStatus.PROCESSED)
        if document_ids:
            wanted = set(document_ids)
            docs = [d for d in docs if d.doc_id in wanted]
            if not docs:
                raise DocQAError.validation(
                    "The selected documents are not processed yet", "document_ids",
                    document_ids=list(document_ids),
                )
        elif not docs:
            raise DocQAError.validation(
                "No processed documents available for querying", "document_ids"
            )
        return {d.doc_id: d.metadata.title or d.name for d in docs}

    async def answer(self, req: QueryRequest) -> Query:
        started = time.perf_counter()
        question = self.validate_question(req.question)
        doc_names = self._processed_names(req.document_ids)

        results = await self.retriever.retrieve(question, req.document_ids, req.max_results)
        sources = format_sources(results, doc_names, self.snippet_chars)

        if not results:
            answer = NO_CONTEXT_ANSWER
        else:
            prompt = build_prompt(question, build_context(results))
            answer = await retry_with_policy(
                lambda: self.llm.generate(prompt), self.policy, label=f"{self.llm.name} generation"
            )

        query = Query(
            question=question,
            document_ids=req.document_ids,
            max_results=req.max_results,
            answer=answer,
            sources=sources if req.include_sources else [],
            confidence=calculate_confidence(answer, sources),
            processing_time=int((time.perf_counter() - started) * 1000),
        )
        self.store.save_query(query)
        logger.info(
            "query %s answered with %d sources in %dms", query.query_id, len(sources), query.processing_time
        )
        return query
