"""
AI Duplicate Verifier

Asks a text-completion service a strict yes/no question about two listings.
Only a light projection of each listing is sent: seller, contact and
source fields are excluded so the model judges the flat itself.
"""

import re
import json
import logging
from dataclasses import dataclass
from typing import Any, Dict, List, Optional, Sequence

from ..exceptions import CollaboratorError, ConfigurationError, call_with_timeout
from ..interfaces import CompletionOptions, CompletionResponse, TextCompletionService
from ..models import Listing

logger = logging.getLogger(__name__)

AFFIRMATIVE_TOKENS = frozenset(['ДА', 'YES'])
NEGATIVE_TOKENS = frozenset(['НЕТ', 'NO'])

PROMPT_TEMPLATES = {
    'ru': """Проанализируй два объявления о недвижимости и определи, являются ли они дубликатами (об одном и том же объекте).

ОБЪЯВЛЕНИЕ 1:
{listing_1}

ОБЪЯВЛЕНИЕ 2:
{listing_2}

Эти объявления уже прошли предварительную фильтрацию по embedding-сходству, что означает высокую семантическую близость их текстов.

ВАЖНО: В данных исключены контактные данные продавцов, технические характеристики дома, ссылки и метаданные для фокуса только на характеристиках самого объекта недвижимости.

Критерии для определения дубликатов:
1. Очень похожие или идентичные описания объекта
2. Схожие характеристики недвижимости (площадь, количество комнат, этаж, планировка)
3. Близкие цены (могут отличаться из-за переговоров или изменений во времени)
4. Схожие временные рамки публикации

Учти что:
- Дубликаты могут быть с разных сайтов (источников)
- Цены могут немного отличаться из-за времени или переговоров
- Описания могут быть слегка переформулированы
- Один объект может продаваться через разных риелторов
- НЕ учитывай информацию о продавцах, контакты, тип дома, ремонт и другие исключенные поля

ВАЖНО: Ответь строго "ДА" если это дубликаты, или "НЕТ" если это разные объекты. Никаких дополнительных слов или объяснений.""",
    'en': """Analyze two real estate listings and decide whether they are duplicates (describe the same property).

LISTING 1:
{listing_1}

LISTING 2:
{listing_2}

These listings already passed an embedding similarity pre-filter, so their texts are semantically close.

NOTE: Seller contacts, building characteristics, links and metadata are excluded so that only the property itself is compared.

Duplicate criteria:
1. Very similar or identical property descriptions
2. Similar characteristics (area, room count, floor, layout)
3. Close prices (they may differ after negotiation or over time)
4. Similar publication time frames

Keep in mind:
- Duplicates may come from different websites (sources)
- Prices may differ slightly over time or after negotiation
- Descriptions may be paraphrased
- One property may be sold through different agents
- Do NOT consider sellers, contacts, building type, renovation or other excluded fields

IMPORTANT: Answer strictly "YES" if these are duplicates or "NO" if they are different properties. No additional words or explanations.""",
}


def parse_response(content: Optional[str]) -> bool:
    """
    Interpret a model answer.

    An affirmative token without a negative token means "duplicate";
    anything else, including empty or unparseable output, means "not".
    """
    if not content:
        return False
    tokens = set(re.findall(r'\w+', content.upper()))
    return bool(tokens & AFFIRMATIVE_TOKENS) and not tokens & NEGATIVE_TOKENS


@dataclass
class Verdict:
    is_duplicate: bool
    answer: Optional[str] = None
    provider: Optional[str] = None
    error: Optional[str] = None


class AIDuplicateVerifier:
    """
    Pairwise duplicate adjudication through a text-completion service.
    """

    def __init__(self, completion_service: TextCompletionService, language: str = "ru",
                 max_tokens: int = 10, description_max_length: int = 500,
                 timeout: Optional[float] = None):
        if language not in PROMPT_TEMPLATES:
            raise ConfigurationError(f"No prompt template for language '{language}'")
        self.completion_service = completion_service
        self.language = language
        self.options = CompletionOptions(task_type="duplicates", language=language, max_tokens=max_tokens)
        self.description_max_length = description_max_length
        self.timeout = timeout

    def light_projection(self, listing: Listing) -> Dict[str, Any]:
        """Listing fields describing the flat itself."""
        description = listing.description[:self.description_max_length] if listing.description else None
        return {
            'description': description,
            'property_type': listing.property_type,
            'price': listing.price,
            'area_total': listing.area_total,
            'area_living': listing.area_living,
            'area_kitchen': listing.area_kitchen,
            'rooms': listing.rooms,
            'floor': listing.floor,
            'updated': listing.updated.isoformat() if listing.updated else None,
            'created': listing.created.isoformat() if listing.created else None,
        }

    def build_prompt(self, listing_a: Listing, listing_b: Listing) -> str:
        return PROMPT_TEMPLATES[self.language].format(
            listing_1=json.dumps(self.light_projection(listing_a), ensure_ascii=False, indent=2),
            listing_2=json.dumps(self.light_projection(listing_b), ensure_ascii=False, indent=2),
        )

    def verify(self, new_listing: Listing, candidate: Listing) -> Verdict:
        """
        Ask whether two listings describe the same flat.

        Never raises: a failed or timed-out call is a "no" with the error
        recorded on the verdict.
        """
        prompt = self.build_prompt(new_listing, candidate)
        try:
            response = call_with_timeout(self.completion_service.complete, self.timeout, prompt, self.options)
        except Exception as e:
            logger.warning(f"AI verification failed for {new_listing.id} vs {candidate.id}: {e}")
            return Verdict(is_duplicate=False, error=str(e))

        content = response.content if isinstance(response, CompletionResponse) else str(response)
        is_duplicate = parse_response(content)
        logger.info(f"AI verdict {new_listing.id} vs {candidate.id}: "
                    f"{'duplicate' if is_duplicate else 'different'} ({content!r})")
        return Verdict(is_duplicate=is_duplicate, answer=content,
                       provider=getattr(response, 'provider', None))


class ProviderChain:
    """
    Prioritised list of completion services tried in order.

    Implements the TextCompletionService contract; raises CollaboratorError
    only when every provider failed.
    """

    def __init__(self, services: Sequence[TextCompletionService], names: Optional[Sequence[str]] = None):
        if not services:
            raise ConfigurationError("ProviderChain needs at least one completion service")
        self.services: List[TextCompletionService] = list(services)
        self.names = list(names) if names else [type(s).__name__ for s in self.services]
        if len(self.names) != len(self.services):
            raise ConfigurationError("ProviderChain names must match services")

    def complete(self, prompt: str, options: CompletionOptions) -> CompletionResponse:
        failures = []
        for name, service in zip(self.names, self.services):
            try:
                response = service.complete(prompt, options)
            except Exception as e:
                logger.warning(f"Completion provider {name} failed: {e}")
                failures.append(f"{name}: {e}")
                continue
            if response.provider is None:
                response.provider = name
            return response
        raise CollaboratorError(f"All {len(self.services)} completion providers failed: {'; '.join(failures)}")
