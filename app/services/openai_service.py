"""OpenAI LLM service for answers, setup guides, architecture notes and quizzes."""
import json
import logging
from typing import Any, Dict, List, Optional, Union

from openai import OpenAI, OpenAIError, APITimeoutError

from app.core.config import settings
from app.core.exceptions import GenerationError
from app.utils.json_extract import extract_json, extract_json_array, extract_json_object

logger = logging.getLogger(__name__)

ASSISTANT_INSTRUCTIONS = """You are an expert onboarding assistant helping new developers understand the codebase.
Your responsibilities:
- Answer questions about the codebase architecture and components
- Generate step-by-step setup guides
- Explain code patterns and best practices
- Provide context-aware responses based on the actual codebase

Always be helpful, concise, and provide code examples when relevant."""


def _holds_objects(items: list) -> bool:
    # Skips bracketed id lists such as "messages [1, 2]" ahead of the question array
    return any(isinstance(item, dict) for item in items)


class OpenAIService:
    """Service for interacting with OpenAI API."""

    def __init__(self):
        """Initialize OpenAI client with API key from settings."""
        # No retries: a failed call surfaces to the caller straight away
        self.client = OpenAI(
            api_key=settings.OPENAI_API_KEY,
            timeout=settings.GENERATION_TIMEOUT_SECONDS,
            max_retries=0,
        )
        self.model = getattr(settings, 'OPENAI_MODEL', 'gpt-4o-mini')
        self.temperature = settings.OPENAI_TEMPERATURE

    def _complete(self, prompt: str, system_prompt: str = ASSISTANT_INSTRUCTIONS) -> str:
        """Run one chat completion and return the reply text."""
        try:
            response = self.client.chat.completions.create(
                model=self.model,
                messages=[
                    {"role": "system", "content": system_prompt},
                    {"role": "user", "content": prompt}
                ],
                temperature=self.temperature,
            )
        except APITimeoutError as e:
            logger.error("OpenAI request timed out after %ss: %s", settings.GENERATION_TIMEOUT_SECONDS, e)
            raise GenerationError("Generation timed out")
        except OpenAIError as e:
            logger.error("OpenAI request failed: %s", e)
            raise GenerationError()

        if not response.choices:
            raise GenerationError("Generation returned no output")
        return response.choices[0].message.content or ""

    def generate_text(self, prompt: str) -> str:
        """Free-text generation."""
        return self._complete(prompt)

    def generate_structured(self, prompt: str, opener: str = "{") -> Union[Dict, List, str]:
        """
        Generate a reply that is expected to embed JSON.

        Returns the first parseable JSON value opening with ``opener``, or the
        raw reply text when none can be extracted.
        """
        raw = self._complete(prompt)
        parsed = extract_json(raw, opener)
        if parsed is None:
            logger.warning("Could not extract JSON from model output (%d chars)", len(raw))
            return raw
        return parsed

    def answer_question(self, question: str, context: Optional[List[Dict[str, Any]]] = None) -> str:
        """
        Answer a question, optionally grounded on similar cached Q/A pairs.

        Args:
            question: The user's question
            context: Dictionaries with 'question' and 'answer' keys

        Returns:
            The answer text
        """
        context_text = ""
        if context:
            pairs = "\n\n".join(f"Q: {c['question']}\nA: {c['answer']}" for c in context)
            context_text = f"\n\nRelevant context from knowledge base:\n{pairs}"

        return self.generate_text(f"{question}{context_text}")

    def search_codebase(self, query: str) -> str:
        return self.generate_text(f"Search the codebase for: {query}")

    def generate_setup_guide(self, topic: str, codebase_context: Optional[str] = None) -> Union[Dict, str]:
        """
        Ask for a setup guide as a JSON object; falls back to the raw text.

        A parsed guide without markdown content carries the full reply as
        its content.
        """
        context_block = f"Based on the codebase context:\n{codebase_context}\n\n" if codebase_context else ""
        prompt = f"""Generate a comprehensive setup guide for: {topic}

{context_block}Provide the response in the following JSON format:
{{
  "title": "Guide title",
  "description": "Brief description",
  "content": "Full markdown content with step-by-step instructions",
  "prerequisites": ["prerequisite1", "prerequisite2"],
  "difficulty": "beginner|intermediate|advanced",
  "estimatedTime": "X minutes"
}}"""
        raw = self._complete(prompt)
        guide = extract_json_object(raw)
        if guide is None:
            logger.warning("Could not extract JSON from setup guide reply (%d chars)", len(raw))
            return raw
        if not guide.get("content"):
            guide["content"] = raw
        return guide

    def explain_architecture(self, component: str) -> Union[Dict, str]:
        """Ask for a structured explanation of one component."""
        prompt = f"""Analyze the architecture of the component: {component}

Provide a comprehensive explanation including:
- Description of the component's purpose and functionality
- Dependencies (other components it relies on)
- Technology stack used
- Relevant file paths
- Code examples demonstrating key functionality

Return the response in JSON format:
{{
  "componentName": {json.dumps(component)},
  "description": "Detailed description",
  "dependencies": ["dep1", "dep2"],
  "techStack": ["tech1", "tech2"],
  "filePaths": ["path1", "path2"],
  "codeExamples": [
    {{
      "language": "python",
      "code": "example code",
      "description": "What this code does"
    }}
  ]
}}"""
        return self.generate_structured(prompt, opener="{")

    def generate_quiz_questions(
        self,
        transcript: List[Dict[str, Any]],
        num_questions: int = 5,
        guides: Optional[List[Dict[str, Any]]] = None
    ) -> List[Dict]:
        """
        Generate true/false statements from a chat transcript.

        Args:
            transcript: Turns in chronological order, each with 'id',
                'user_question' and 'agent_response'
            num_questions: Number of statements to ask for
            guides: Optional existing guides ('id', 'title') that questions may cite

        Returns:
            The list of raw question dictionaries, empty when the reply
            held no parseable JSON array
        """
        context = self._prepare_transcript(transcript)
        prompt = self._build_quiz_prompt(context, num_questions, guides)

        raw = self._complete(prompt)
        questions = extract_json_array(raw, _holds_objects)
        if questions is None:
            # A wrapper object such as {"questions": [...]} is accepted too
            wrapper = extract_json_object(raw)
            if isinstance(wrapper, dict) and isinstance(wrapper.get("questions"), list):
                questions = wrapper["questions"]

        if questions is None:
            logger.warning("Quiz generation returned no parseable JSON array")
            return []
        return questions

    def _prepare_transcript(self, transcript: List[Dict[str, Any]]) -> str:
        """Prepare the indexed Q/A blocks of a transcript."""
        blocks = []

        for turn in transcript:
            blocks.append(
                f"[Message {turn['id']}]\nQ: {turn['user_question']}\nA: {turn['agent_response']}\n"
            )

        return "\n---\n".join(blocks)

    def _build_quiz_prompt(
        self,
        context: str,
        num_questions: int,
        guides: Optional[List[Dict[str, Any]]]
    ) -> str:
        """Build the prompt with transcript and output requirements."""
        guide_block = ""
        if guides:
            listing = "\n".join(f"- guideId {g['id']}: {g['title']}" for g in guides)
            guide_block = f"\n\nAVAILABLE SETUP GUIDES (cite them in guide_refs when relevant):\n{listing}"

        return f"""Based on the following onboarding conversation, write {num_questions} true/false statements that check whether the reader understood the answers.

CONVERSATION:
{context}{guide_block}

REQUIREMENTS:
- Generate exactly {num_questions} statements
- Mix true and false statements; false ones must be plausible
- Each statement must include:
  * text (the statement to judge)
  * correct_answer (true or false)
  * explanation (why it is true or false)
  * source_message_id (the number of the [Message N] block it is based on, or null)
  * guide_refs (list of {{"guideId": ..., "section": ...}} or null)

Return ONLY a JSON array in this format:
[
  {{
    "text": "Statement",
    "correct_answer": true,
    "explanation": "Why",
    "source_message_id": 1,
    "guide_refs": null
  }}
]"""


def get_openai_service() -> OpenAIService:
    """FastAPI dependency providing the generation service."""
    return OpenAIService()
