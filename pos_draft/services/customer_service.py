"""Customer service - ad-hoc client creation from the sale screen."""
import enum
import logging
from typing import Any, Dict

from pos_draft.exceptions import BusinessLogicError, DraftLockedError, MissingRequiredFieldError
from pos_draft.services.collaborators import ClientDirectory
from pos_draft.services.sale_draft_service import SaleDraft

logger = logging.getLogger(__name__)


class ClientType(enum.Enum):
    INDIVIDUAL = 'INDIVIDUAL'
    LEGAL_ENTITY = 'LEGAL_ENTITY'


# Wire names used by the client directory
CLIENT_TYPE_LABELS = {
    ClientType.INDIVIDUAL: 'Физ.лицо',
    ClientType.LEGAL_ENTITY: 'Юр.лицо',
}

BASE_FIELDS = ('name', 'phone_number', 'address')
LEGAL_ENTITY_FIELDS = BASE_FIELDS + ('ceo_name', 'balance')


def normalize_client_type(value) -> ClientType:
    if value is None or value == '':
        return ClientType.INDIVIDUAL
    if isinstance(value, ClientType):
        return value
    for client_type, label in CLIENT_TYPE_LABELS.items():
        if value == label or str(value).upper() == client_type.name:
            return client_type
    raise BusinessLogicError(f"Unknown client type: {value}")


def build_client_data(data: Dict[str, Any]) -> Dict[str, Any]:
    """
    Validate and shape client data for the directory.

    Individuals send only name, phone and address; legal entities also
    send the director's name and an opening balance (which may be 0).

    Raises:
        MissingRequiredFieldError: on the first missing field
    """
    client_type = normalize_client_type(data.get('type'))
    fields = LEGAL_ENTITY_FIELDS if client_type is ClientType.LEGAL_ENTITY else BASE_FIELDS

    client_data = {'type': CLIENT_TYPE_LABELS[client_type]}
    for name in fields:
        value = data.get(name)
        if isinstance(value, str):
            value = value.strip()
        if value is None or value == '':
            raise MissingRequiredFieldError(name)
        client_data[name] = value
    return client_data


def create_and_attach_client(draft: SaleDraft, directory: ClientDirectory, data: Dict[str, Any]) -> Dict[str, Any]:
    """Create a client through the directory and attach it to the draft."""
    if not draft.is_editable:
        raise DraftLockedError(draft.status.value.lower())

    client_data = build_client_data(data)
    created = directory.create(client_data)

    client_id = created.get('id')
    if not client_id:
        raise BusinessLogicError("Client directory returned no id")

    draft.assign_client(client_id)
    logger.info(f"[DRAFT] Client {client_id} created and attached to draft {draft.id}")
    return created
