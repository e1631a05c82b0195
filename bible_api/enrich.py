from typing import Iterable, List

from bible_api.dataset import VerseDataset
from bible_api.log import get_logger
from bible_api.models import VerseReference

logger = get_logger(__name__)


class VerseEnricher:
    """Fills in verse text the index returned without, from the local dataset"""

    def __init__(self, dataset: VerseDataset):
        self.dataset = dataset

    def enrich(self, references: Iterable[VerseReference]) -> List[VerseReference]:
        references = list(references)
        if not self.dataset:
            logger.warning("No bible data available for text lookup")
            return references

        enriched = []
        for ref in references:
            verse = self.dataset.lookup(*ref.key)
            if verse is not None and verse.text:
                ref = ref.model_copy(update={"text": verse.text, "needs_text_lookup": False})
            enriched.append(ref)

        before = sum(1 for ref in references if not ref.is_usable)
        after = sum(1 for ref in enriched if not ref.is_usable)
        logger.info(f"Text lookup: filled in {before - after} of {before} missing texts")
        return enriched
