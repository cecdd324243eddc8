from typing import Optional, Tuple

from pydantic import BaseModel


class RequestContext(BaseModel):
    """Channel and language a catalog change happened in.

    Serialized into every job payload so workers index with the same
    channel/language/tax-zone view as the request that triggered the change.
    """

    model_config = {"frozen": True}

    channel_id: str
    language_code: str = "en"
    default_tax_zone_id: Optional[str] = None

    def key(self) -> Tuple[str, str]:
        """Grouping key used when batching jobs (channel, language)."""
        return (self.channel_id, self.language_code)
