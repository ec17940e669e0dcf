"""
Question and Feedback Agents using OpenAI Agents SDK.

QuestionGenerator prepares interview questions for a role and returns the
model's raw reply (expected to be a JSON array of strings). FeedbackGenerator
scores a finished interview transcript with structured output.

Supports both OpenAI and Azure OpenAI backends:
  - OpenAI: Set OPENAI_API_KEY (model from OPENAI_MODEL)
  - Azure OpenAI: Set AZURE_OPENAI_ENDPOINT, AZURE_OPENAI_KEY, AZURE_OPENAI_DEPLOYMENT

Last Grunted: 10/15/2026
"""

import logging
import os
from typing import Optional, Union

from agents import Agent, ModelSettings, OpenAIChatCompletionsModel, Runner
from openai import AsyncAzureOpenAI

from .models import FeedbackAssessment, GenerateInterviewRequest, SavedMessage


__all__ = [
    "DEFAULT_MODEL",
    "QuestionGenerator",
    "FeedbackGenerator",
    "build_question_prompt",
    "build_feedback_prompt",
]


logger = logging.getLogger(__name__)


DEFAULT_MODEL = "gpt-5-mini"
DEFAULT_REASONING_EFFORT = "low"


def _resolve_openai_config(
    model: Optional[str],
    azure_client: Optional[AsyncAzureOpenAI],
) -> tuple[str, Optional[AsyncAzureOpenAI]]:
    """
    Determine model name and optional Azure client from arguments and environment.

    Azure OpenAI requires AZURE_OPENAI_ENDPOINT, AZURE_OPENAI_KEY and
    AZURE_OPENAI_DEPLOYMENT (used as the model). Standard OpenAI reads
    OPENAI_API_KEY and optionally OPENAI_MODEL.
    """
    if azure_client is not None:
        deployment = model or os.environ.get("AZURE_OPENAI_DEPLOYMENT")
        if not deployment:
            raise ValueError("An Azure client requires a model or AZURE_OPENAI_DEPLOYMENT")
        return deployment, azure_client

    azure_endpoint = os.environ.get("AZURE_OPENAI_ENDPOINT")
    azure_key = os.environ.get("AZURE_OPENAI_KEY")
    azure_deployment = os.environ.get("AZURE_OPENAI_DEPLOYMENT")
    api_type = os.environ.get("OPENAI_API_TYPE", "").lower()

    if api_type == "azure" or (azure_endpoint and azure_key and azure_deployment):
        if not all([azure_endpoint, azure_key, azure_deployment]):
            raise ValueError(
                "Azure OpenAI requires AZURE_OPENAI_ENDPOINT, AZURE_OPENAI_KEY, "
                "and AZURE_OPENAI_DEPLOYMENT environment variables"
            )
        logger.info("Using Azure OpenAI: %s, deployment: %s", azure_endpoint, azure_deployment)
        client = AsyncAzureOpenAI(
            azure_endpoint=azure_endpoint,
            api_key=azure_key,
            api_version=os.environ.get("AZURE_OPENAI_API_VERSION", "2024-08-01-preview"),
        )
        return model or azure_deployment, client

    resolved = model or os.environ.get("OPENAI_MODEL", DEFAULT_MODEL)
    if not os.environ.get("OPENAI_API_KEY"):
        logger.warning(
            "No OpenAI credentials configured. Set OPENAI_API_KEY or the AZURE_OPENAI_* "
            "variables. Generation will fail at runtime."
        )
    return resolved, None


def _agent_model(
    model: str, azure_client: Optional[AsyncAzureOpenAI]
) -> Union[str, OpenAIChatCompletionsModel]:
    if azure_client is None:
        return model
    return OpenAIChatCompletionsModel(model=model, openai_client=azure_client)


def _model_settings(model: str, reasoning_effort: Optional[str]) -> Optional[ModelSettings]:
    """Reasoning settings for reasoning models, None for everything else."""
    name = model.lower()
    if "gpt-5" in name or "o1" in name or "o3" in name:
        return ModelSettings(reasoning={"effort": reasoning_effort or DEFAULT_REASONING_EFFORT})
    return None


# =============================================================================
# Question Generation
# =============================================================================

QUESTION_WRITER_INSTRUCTIONS = """You prepare job interview questions that will be read aloud by a voice assistant.
Return only a JSON array of question strings, with no surrounding text or code fences.
Do not use "/" or "*" or any other special characters which might break the voice assistant."""


def build_question_prompt(request: GenerateInterviewRequest) -> str:
    """Prompt asking for `amount` questions as a JSON array."""
    return (
        "Prepare questions for a job interview.\n"
        f"The job role is {request.role}.\n"
        f"The job experience level is {request.level}.\n"
        f"The tech stack used in the job is: {request.techstack}.\n"
        "The focus between behavioural and technical questions should lean towards: "
        f"{request.type}.\n"
        f"The amount of questions required is: {request.amount}.\n"
        "Please return only the questions, without any additional text.\n"
        "Return the questions formatted like this:\n"
        '["Question 1", "Question 2", "Question 3"]'
    )


class QuestionGenerator:
    """
    Generates interview questions with the OpenAI Agents SDK.

    Example:
        >>> generator = QuestionGenerator()
        >>> reply = await generator.generate(request)
        >>> reply
        '["Tell me about a time you scaled a service.", ...]'
    """

    def __init__(
        self,
        model: Optional[str] = None,
        azure_client: Optional[AsyncAzureOpenAI] = None,
        reasoning_effort: Optional[str] = None,
    ) -> None:
        self.model, self._azure_client = _resolve_openai_config(model, azure_client)
        self._agent = Agent(
            name="Interview Question Writer",
            instructions=QUESTION_WRITER_INSTRUCTIONS,
            model=_agent_model(self.model, self._azure_client),
            model_settings=_model_settings(self.model, reasoning_effort),
        )
        provider_info = "Azure OpenAI" if self._azure_client else "OpenAI"
        logger.info("QuestionGenerator initialized with %s, model: %s", provider_info, self.model)

    async def generate(self, request: GenerateInterviewRequest) -> str:
        """
        Ask the model for questions.

        Returns:
            The model's raw text reply. Parsing is the caller's job.
        """
        prompt = build_question_prompt(request)
        logger.debug("Generating %d questions for role=%s", request.amount, request.role)
        result = await Runner.run(self._agent, prompt)
        return str(result.final_output or "")


# =============================================================================
# Feedback Generation
# =============================================================================

FEEDBACK_CATEGORIES = (
    "Communication Skills",
    "Technical Knowledge",
    "Problem Solving",
    "Cultural Fit",
    "Confidence and Clarity",
)

FEEDBACK_INSTRUCTIONS = f"""You are a professional interviewer analyzing a mock interview.
Evaluate the candidate thoroughly and in detail. Be strict: do not be lenient.
If there are mistakes or areas for improvement, point them out.

Score the candidate from 0 to 100 in exactly these categories, in this order:
{chr(10).join(f"- {name}" for name in FEEDBACK_CATEGORIES)}

Give a short comment for each category, list strengths and areas for
improvement, an overall total score, and a final assessment paragraph."""


def build_feedback_prompt(
    transcript: list[SavedMessage],
    questions: Optional[list[str]] = None,
) -> str:
    """Format the transcript (and the planned questions, if known) for the feedback agent."""
    parts = ["# MOCK INTERVIEW TRANSCRIPT"]
    if questions:
        parts.append("## Planned questions")
        parts.extend(f"- {question}" for question in questions)
        parts.append("")
    parts.append("## Conversation")
    parts.extend(f"- {message.role}: {message.content}" for message in transcript)
    return "\n".join(parts)


class FeedbackGenerator:
    """
    Scores a finished interview with structured output.

    Example:
        >>> generator = FeedbackGenerator()
        >>> assessment = await generator.assess(transcript_messages)
        >>> assessment.total_score
        72
    """

    def __init__(
        self,
        model: Optional[str] = None,
        azure_client: Optional[AsyncAzureOpenAI] = None,
        reasoning_effort: Optional[str] = None,
    ) -> None:
        self.model, self._azure_client = _resolve_openai_config(model, azure_client)
        self._agent = Agent(
            name="Interview Feedback Analyst",
            instructions=FEEDBACK_INSTRUCTIONS,
            model=_agent_model(self.model, self._azure_client),
            output_type=FeedbackAssessment,
            model_settings=_model_settings(self.model, reasoning_effort),
        )
        logger.info("FeedbackGenerator initialized, model: %s", self.model)

    async def assess(
        self,
        transcript: list[SavedMessage],
        questions: Optional[list[str]] = None,
    ) -> FeedbackAssessment:
        prompt = build_feedback_prompt(transcript, questions)
        result = await Runner.run(self._agent, prompt)
        assessment: FeedbackAssessment = result.final_output_as(FeedbackAssessment)
        logger.info(
            "Feedback assessment complete - total_score: %d, categories: %d",
            assessment.total_score,
            len(assessment.category_scores),
        )
        return assessment
