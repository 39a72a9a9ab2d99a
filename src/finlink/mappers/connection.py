"""Connection (provider item) mapper."""

from ..models import ConnectionRecord
from ..provider.schemas import ProviderItem
from ..utils.dates import to_iso_timestamp


def map_connection(item: ProviderItem) -> ConnectionRecord:
    """Map a provider item onto its connection row.

    The connector name doubles as the institution name.
    """
    connector = item.connector
    return ConnectionRecord(
        item_id=item.id,
        user_id=item.client_user_id,
        connector_id=connector.id if connector else None,
        connector_name=connector.name if connector else None,
        connector_image_url=connector.image_url if connector else None,
        status=item.status,
        provider_created_at=to_iso_timestamp(item.created_at),
        provider_updated_at=to_iso_timestamp(item.updated_at),
        last_updated_at=to_iso_timestamp(item.last_updated_at),
        webhook_url=item.webhook_url,
        parameters=item.parameter,
        institution_name=connector.name if connector else None,
        institution_url=connector.institution_url if connector else None,
        primary_color=connector.primary_color if connector else None,
        consecutive_failed_login_attempts=item.consecutive_failed_login_attempts,
    )
