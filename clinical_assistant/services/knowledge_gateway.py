"""
Knowledge Gateway - LLM-backed answers to clinical knowledge questions.

The gateway asks the configured LLM for a short answer plus any clinical
entities it mentions, in the same tagged-union shape the extractor emits.
Responses are cached in the llm_cache table when a session is provided.
"""
import json
import logging
import re
from typing import Any, Dict, List, Optional

from pydantic import ValidationError
from sqlalchemy.orm import Session

from clinical_assistant.agent.models import Entity, EntityAdapter, KnowledgeAnswer
from clinical_assistant.config import settings
from clinical_assistant.models import LLMCache
from clinical_assistant.providers.llm.factory import LLMFactory
from clinical_assistant.services.base import KnowledgeGateway, KnowledgeGatewayError

logger = logging.getLogger(__name__)


KNOWLEDGE_SYSTEM_PROMPT = (
    "You are a clinical assistant for physiotherapists. Answer in Spanish, "
    "concisely, using markdown. Do not invent patient data; patient facts come "
    "from the clinical record, not from you."
)

KNOWLEDGE_PROMPT = '''Answer the clinician's question.

Question:
{question}

Return a JSON object with this structure:
{{
  "answer_markdown": "your answer in Spanish",
  "entities": [
    {{"kind": "medication", "name": "drug name", "strength": "e.g. 400 mg", "frequency": "e.g. cada 8 horas", "duration_days": 7, "route": "oral", "confidence": 0.0-1.0}},
    {{"kind": "diagnosis", "label": "diagnosis", "coding": [], "confidence": 0.0-1.0}},
    {{"kind": "procedure", "label": "test or technique", "coding": [], "confidence": 0.0-1.0}},
    {{"kind": "instruction", "text": "exercise or precaution", "confidence": 0.0-1.0}}
  ]
}}

RULES:
1. Only include entities explicitly mentioned in your answer
2. Omit optional fields you do not know instead of inventing them
3. Use an empty list when there are no entities

Return ONLY the JSON object, no additional text.'''


class LLMKnowledgeGateway(KnowledgeGateway):
    """Answers knowledge questions with the configured LLM provider."""

    def __init__(self, llm=None, db: Optional[Session] = None):
        """
        Args:
            llm: Optional LLM provider. If not provided, uses factory default.
            db: Optional session used for response caching
        """
        self._llm = llm
        self.db = db

    @property
    def llm(self):
        """Lazy-load LLM provider."""
        if self._llm is None:
            self._llm = LLMFactory.create()
        return self._llm

    async def query(self, text: str) -> KnowledgeAnswer:
        """
        Answer a clinical knowledge question.

        Raises:
            KnowledgeGatewayError: If the LLM call fails or the response is not valid JSON
        """
        if not text or not text.strip():
            raise KnowledgeGatewayError("Empty question provided")

        prompt = KNOWLEDGE_PROMPT.format(question=text.strip())
        try:
            response = await self._generate(prompt)
        except KnowledgeGatewayError:
            raise
        except Exception as e:
            raise KnowledgeGatewayError(f"Knowledge query failed: {str(e)}") from e

        try:
            payload = self._parse_llm_response(response)
        except json.JSONDecodeError as e:
            raise KnowledgeGatewayError(f"Failed to parse LLM response as JSON: {str(e)}") from e

        answer = payload.get("answer_markdown")
        if not isinstance(answer, str) or not answer.strip():
            raise KnowledgeGatewayError("LLM response has no answer_markdown")

        return KnowledgeAnswer(
            ok=True,
            answer_markdown=answer.strip(),
            entities=self._parse_entities(payload.get("entities")),
        )

    async def _generate(self, prompt: str) -> str:
        """Generate via LLM, going through the cache when enabled."""
        provider = self.llm.get_provider_name()
        model = self.llm.get_model_name()
        use_cache = self.db is not None and settings.enable_llm_cache

        if use_cache:
            # Key covers system and user prompt
            prompt_hash = LLMCache.hash_prompt(f"{KNOWLEDGE_SYSTEM_PROMPT}\n\n{prompt}", provider, model)
            cached = self.db.query(LLMCache).filter(LLMCache.prompt_hash == prompt_hash).first()
            if cached:
                logger.debug("Knowledge cache hit (%s/%s)", provider, model)
                return cached.response

        response = await self.llm.generate(prompt, system=KNOWLEDGE_SYSTEM_PROMPT)

        if use_cache:
            self.db.add(LLMCache(
                prompt_hash=prompt_hash,
                prompt=prompt,
                response=response,
                provider=provider,
                model=model,
            ))
            self.db.commit()

        return response

    def _parse_llm_response(self, response: str) -> Dict[str, Any]:
        """
        Parse JSON from LLM response, handling markdown code blocks.

        Args:
            response: Raw LLM response text

        Returns:
            Parsed JSON dictionary
        """
        cleaned = (response or "").strip()

        # Handle ```json ... ``` blocks
        if cleaned.startswith("```"):
            lines = cleaned.split("\n")
            json_lines = []
            in_block = False
            for line in lines:
                if line.startswith("```") and not in_block:
                    in_block = True
                    continue
                elif line.startswith("```") and in_block:
                    break
                elif in_block:
                    json_lines.append(line)
            cleaned = "\n".join(json_lines)

        match = re.search(r'\{[\s\S]*\}', cleaned)
        if match:
            cleaned = match.group(0)

        payload = json.loads(cleaned)
        if not isinstance(payload, dict):
            raise json.JSONDecodeError("Expected a JSON object", cleaned, 0)
        return payload

    def _parse_entities(self, raw_entities: Any) -> List[Entity]:
        """Validate entity dicts against the entity union, dropping invalid ones."""
        entities: List[Entity] = []
        for raw in raw_entities or []:
            try:
                entities.append(EntityAdapter.validate_python(raw))
            except ValidationError as e:
                logger.warning("Dropping malformed entity from knowledge answer: %s", e.errors()[0]["msg"])
        return entities
