"""Identity mapper."""

from ..models import Address, Email, IdentityRecord, PhoneNumber, Relation
from ..provider.schemas import ProviderIdentity
from ..utils.dates import to_iso_timestamp


def map_identity(identity: ProviderIdentity, item_id: str) -> IdentityRecord:
    """Map a provider identity onto the identity row of ``item_id``.

    Nested address, phone, e-mail and relation entries keep any fields the
    provider sends beyond the known ones.
    """
    addresses = None
    if identity.addresses is not None:
        addresses = [Address.model_validate(a.model_dump()) for a in identity.addresses]

    phone_numbers = None
    if identity.phone_numbers is not None:
        phone_numbers = [
            PhoneNumber.model_validate(p.model_dump()) for p in identity.phone_numbers
        ]

    emails = None
    if identity.emails is not None:
        emails = [Email.model_validate(e.model_dump()) for e in identity.emails]

    relations = None
    if identity.relations is not None:
        relations = [Relation.model_validate(r.model_dump()) for r in identity.relations]

    return IdentityRecord(
        identity_id=identity.id,
        item_id=item_id,
        full_name=identity.full_name,
        company_name=identity.company_name,
        document=identity.document,
        document_type=identity.document_type,
        tax_number=identity.tax_number,
        job_title=identity.job_title,
        birth_date=to_iso_timestamp(identity.birth_date),
        investor_profile=identity.investor_profile,
        establishment_code=identity.establishment_code,
        establishment_name=identity.establishment_name,
        addresses=addresses,
        phone_numbers=phone_numbers,
        emails=emails,
        relations=relations,
    )
