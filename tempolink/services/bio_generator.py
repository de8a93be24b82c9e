"""
Teacher biography drafting with OpenAI chat completions.
"""

import logging
from typing import Optional

from openai import AsyncOpenAI, OpenAIError

from ..config import OPENAI_API_KEY, OPENAI_MODEL

logger = logging.getLogger(__name__)

MAX_TOKENS = 1500
TEMPERATURE = 0.7

_client: Optional[AsyncOpenAI] = None


class BioGenerationError(Exception):
    """Raised when no biography could be produced"""


def get_openai_client() -> AsyncOpenAI:
    global _client
    if _client is None:
        if not OPENAI_API_KEY:
            raise BioGenerationError("OPENAI_API_KEY not configured")
        _client = AsyncOpenAI(api_key=OPENAI_API_KEY, timeout=30.0, max_retries=2)
    return _client


def build_bio_prompt(teacher_name: str, credentials: str) -> str:
    return f"""You are a professional copywriter specializing in creating compelling biographies for music teachers. Based on the following teacher's name and credentials, create a marketable biography that will attract students and parents. The biography should be professional, engaging, and highlight the teacher's qualifications and unique approach to music education.

Teacher Name: {teacher_name}

Credentials and Information:
{credentials}

Please create a biography that:
- Uses the teacher's name ({teacher_name}) throughout the biography
- Is professional and engaging
- Highlights qualifications and experience
- Shows personality and teaching philosophy
- Appeals to potential students and parents
- Is under 1000 characters
- Uses a warm, approachable tone
- Does not include a header or footer
- Writes in first person about {teacher_name}

Biography:"""


async def generate_biography(teacher_name: str, credentials: str) -> str:
    """
    Draft a biography from free-form credentials.

    Raises:
        BioGenerationError: on API failure or an empty completion
    """
    try:
        completion = await get_openai_client().chat.completions.create(
            model=OPENAI_MODEL,
            messages=[{"role": "user", "content": build_bio_prompt(teacher_name, credentials)}],
            max_tokens=MAX_TOKENS,
            temperature=TEMPERATURE,
        )
    except OpenAIError as e:
        logger.error(f"❌ OpenAI biography request failed: {e}")
        raise BioGenerationError(str(e)) from e

    content = completion.choices[0].message.content if completion.choices else None
    if not content or not content.strip():
        logger.error("❌ OpenAI returned an empty biography")
        raise BioGenerationError("Empty completion")

    logger.info(f"✅ Generated biography for {teacher_name} ({len(content)} chars)")
    return content.strip()
