# =============================================================================
# core/catalog.py  —  The Quo Tool Catalogue
# =============================================================================
#
# WHAT THIS MODULE DOES:
#   Declares every tool the server exposes: its parameter schema, its
#   description (the LLM reads this to decide WHEN to call it), and a thin
#   handler that turns validated parameters into exactly one gateway call.
#
# TOOL NAMING CONVENTIONS:
#   - get_*    → read one entity by id
#   - list_*   → read a page; the response is returned VERBATIM when the
#                endpoint paginates, so the caller can pass the next-page
#                token straight back as pageToken
#   - create_*, update_*, send_* → write
#   - delete_* → destructive, flagged in the description and annotations
#
# ENVELOPES:
#   Each tool declares how its response is shaped (core/registry.Envelope):
#   single-entity and unpaged endpoints unwrap {"data": ...}; paged list
#   endpoints return the whole body including the token.
# =============================================================================

from functools import partial
from typing import Any, Dict
from urllib.parse import quote

from core.errors import PreconditionError
from core.gateway import QuoGateway
from core.redaction import Redactor
from core.registry import Envelope, ToolRegistry
from core.schema import Param, array, boolean, enum, integer, obj, optional, string

DEFAULT_PAGE_SIZE = 20
MAX_TEXT_LENGTH = 1600

CONTACT_FIELDS = ("firstName", "lastName", "company", "role", "phoneNumbers", "emails")


def _path(template: str, *ids: str) -> str:
    """Fill path placeholders with percent-encoded identifiers."""
    return template.format(*(quote(i, safe="") for i in ids))


def _page_size(maximum: int) -> Param:
    return optional(
        integer(f"Max results per page (1-{maximum}, default {DEFAULT_PAGE_SIZE})", minimum=1, maximum=maximum),
        default=DEFAULT_PAGE_SIZE,
    )


def _identifier(description: str) -> Param:
    return string(description, min_length=1)


_PAGE_TOKEN = optional(string("Pagination token from the previous response's nextPageToken"))
_ISO_DATETIME = "ISO 8601 datetime"


def _labelled_entry(description: str, default_label: bool) -> Param:
    label = string("Label, e.g. 'primary', 'work'")
    fields = {
        "name": optional(label, default="primary") if default_label else label,
        "value": string(description),
    }
    if not default_label:
        fields["id"] = optional(string("Existing entry ID, to update it in place"))
    return obj(**fields)


# =============================================================================
# MESSAGES
# =============================================================================
SEND_TEXT = {
    "from": string("Phone number ID (PN...) or E.164 format sender number"),
    "to": string("Recipient phone number in E.164 format (e.g. +18325551234)"),
    "content": string(f"Message text (1-{MAX_TEXT_LENGTH} chars)", min_length=1, max_length=MAX_TEXT_LENGTH),
    "setInboxStatus": optional(enum("done", description="Set to 'done' to move the conversation to the Done inbox")),
}


def send_text(gateway: QuoGateway, params: Dict[str, Any]) -> Any:
    body = {"from": params["from"], "to": [params["to"]], "content": params["content"]}
    if params.get("setInboxStatus"):
        body["setInboxStatus"] = params["setInboxStatus"]
    return gateway.execute("/messages", method="POST", body=body)


LIST_MESSAGES = {
    "phoneNumberId": _identifier("Quo phone number ID (PN...)"),
    "participants": array(string(), "Phone numbers of the other party in E.164 format"),
    "maxResults": _page_size(100),
    "createdAfter": optional(string(f"{_ISO_DATETIME}, only messages after this time")),
    "createdBefore": optional(string(f"{_ISO_DATETIME}, only messages before this time")),
    "pageToken": _PAGE_TOKEN,
}


def list_messages(gateway: QuoGateway, params: Dict[str, Any]) -> Any:
    return gateway.execute("/messages", params=params)


GET_MESSAGE = {"id": _identifier("Message ID")}


def get_message(gateway: QuoGateway, params: Dict[str, Any]) -> Any:
    return gateway.execute(_path("/messages/{}", params["id"]))


# =============================================================================
# CONVERSATIONS
# =============================================================================
LIST_CONVERSATIONS = {
    "phoneNumbers": optional(array(string(), "Filter by Quo phone number IDs (PN...) or E.164 numbers")),
    "userId": optional(string("Filter by user ID (US...)")),
    "createdAfter": optional(string(_ISO_DATETIME)),
    "createdBefore": optional(string(_ISO_DATETIME)),
    "updatedAfter": optional(string(_ISO_DATETIME)),
    "updatedBefore": optional(string(_ISO_DATETIME)),
    "excludeInactive": optional(boolean("Exclude inactive conversations")),
    "maxResults": _page_size(100),
    "pageToken": _PAGE_TOKEN,
}


def list_conversations(gateway: QuoGateway, params: Dict[str, Any]) -> Any:
    return gateway.execute("/conversations", params=params)


# =============================================================================
# CONTACTS
# =============================================================================
CREATE_CONTACT = {
    "firstName": string("Contact first name"),
    "lastName": optional(string("Contact last name")),
    "company": optional(string("Company name")),
    "role": optional(string("Role/title")),
    "phoneNumbers": optional(array(_labelled_entry("Phone number", default_label=True), "Phone numbers with labels")),
    "emails": optional(array(_labelled_entry("Email address", default_label=True), "Email addresses with labels")),
}


def create_contact(gateway: QuoGateway, params: Dict[str, Any]) -> Any:
    # Blank optional fields are left out.
    default_fields = {"firstName": params["firstName"]}
    for key in CONTACT_FIELDS[1:]:
        if params.get(key):
            default_fields[key] = params[key]
    return gateway.execute("/contacts", method="POST", body={"defaultFields": default_fields})


LIST_CONTACTS = {
    "maxResults": _page_size(50),
    "pageToken": _PAGE_TOKEN,
    "externalIds": optional(array(string(), "Filter by external IDs")),
}


def list_contacts(gateway: QuoGateway, params: Dict[str, Any]) -> Any:
    return gateway.execute("/contacts", params=params)


GET_CONTACT = {"id": _identifier("Contact ID")}


def get_contact(gateway: QuoGateway, params: Dict[str, Any]) -> Any:
    return gateway.execute(_path("/contacts/{}", params["id"]))


UPDATE_CONTACT = {
    "id": _identifier("Contact ID"),
    "firstName": optional(string("Updated first name")),
    "lastName": optional(string("Updated last name")),
    "company": optional(string("Updated company")),
    "role": optional(string("Updated role")),
    "phoneNumbers": optional(array(_labelled_entry("Phone number", default_label=False), "Updated phone numbers")),
    "emails": optional(array(_labelled_entry("Email address", default_label=False), "Updated emails")),
}


def update_contact(gateway: QuoGateway, params: Dict[str, Any]) -> Any:
    default_fields = {key: params[key] for key in CONTACT_FIELDS if key in params}
    if not default_fields:
        raise PreconditionError(
            "No fields provided for update_contact",
            f"Pass at least one of: {', '.join(CONTACT_FIELDS)}.",
        )
    return gateway.execute(
        _path("/contacts/{}", params["id"]),
        method="PATCH",
        body={"defaultFields": default_fields},
    )


DELETE_CONTACT = {
    "id": _identifier("Contact ID to delete"),
    "confirm": optional(boolean("Set to true to confirm the deletion")),
}


def delete_contact(gateway: QuoGateway, params: Dict[str, Any], require_confirmation: bool = False) -> str:
    if require_confirmation and params.get("confirm") is not True:
        raise PreconditionError(
            "delete_contact requires confirmation",
            "This server is configured to require confirm=true for deletions.",
        )
    gateway.execute(_path("/contacts/{}", params["id"]), method="DELETE")
    return f"Contact {params['id']} deleted."


def get_contact_custom_fields(gateway: QuoGateway, params: Dict[str, Any]) -> Any:
    return gateway.execute("/contact-custom-fields")


# =============================================================================
# CALLS
# =============================================================================
LIST_CALLS = {
    "phoneNumberId": _identifier("Quo phone number ID (PN...)"),
    "participants": array(string(), "Other party phone numbers in E.164 format"),
    "maxResults": _page_size(100),
    "createdAfter": optional(string(_ISO_DATETIME)),
    "createdBefore": optional(string(_ISO_DATETIME)),
    "pageToken": _PAGE_TOKEN,
}


def list_calls(gateway: QuoGateway, params: Dict[str, Any]) -> Any:
    return gateway.execute("/calls", params=params)


CALL_ID = {"callId": _identifier("Call ID (AC...)")}


def _call_resource(template: str, gateway: QuoGateway, params: Dict[str, Any]) -> Any:
    return gateway.execute(_path(template, params["callId"]))


# Endpoints keyed by call id: (tool name, path template, description)
_CALL_RESOURCES = (
    ("get_call", "/calls/{}", "Get details of a specific call by ID, including duration, status, direction."),
    ("get_call_recordings", "/call-recordings/{}", "Get recordings for a specific call."),
    ("get_call_summary", "/call-summaries/{}", "Get an AI-generated summary of a call (Business/Scale plans only)."),
    ("get_call_transcription", "/call-transcripts/{}", "Get the transcription of a call (Business/Scale plans only)."),
    ("get_voicemail", "/call-voicemails/{}", "Get the voicemail for a call."),
)


# =============================================================================
# PHONE NUMBERS, USERS, WEBHOOKS
# =============================================================================
LIST_PHONE_NUMBERS = {"userId": optional(string("Filter by user ID (US...)"))}


def list_phone_numbers(gateway: QuoGateway, params: Dict[str, Any]) -> Any:
    return gateway.execute("/phone-numbers", params=params)


GET_PHONE_NUMBER = {"phoneNumberId": _identifier("Phone number ID (PN...)")}


def get_phone_number(gateway: QuoGateway, params: Dict[str, Any]) -> Any:
    return gateway.execute(_path("/phone-numbers/{}", params["phoneNumberId"]))


def list_users(gateway: QuoGateway, params: Dict[str, Any]) -> Any:
    return gateway.execute("/users")


GET_USER = {"userId": _identifier("User ID (US...)")}


def get_user(gateway: QuoGateway, params: Dict[str, Any]) -> Any:
    return gateway.execute(_path("/users/{}", params["userId"]))


def list_webhooks(gateway: QuoGateway, params: Dict[str, Any]) -> Any:
    return gateway.execute("/webhooks")


# =============================================================================
# Registry assembly
# =============================================================================
def build_registry(
    gateway: QuoGateway,
    redactor: Redactor,
    require_delete_confirmation: bool = False,
) -> ToolRegistry:
    """Register every Quo tool against `gateway`."""
    registry = ToolRegistry(redactor)

    def add(name, description, schema, handler, envelope=Envelope.DATA, **flags):
        registry.register(name, description, schema, partial(handler, gateway), envelope=envelope, **flags)

    # --- Messages ---
    add(
        "send_text",
        "Send an SMS text message from a Quo phone number to a recipient. Use E.164 format for "
        "phone numbers (e.g. +18325551234). The 'from' field can be a phone number ID (PN...) "
        "or E.164 number.",
        SEND_TEXT, send_text,
    )
    add(
        "list_messages",
        "List messages for a specific phone number and conversation participant. Returns messages "
        "in chronological order with pagination.",
        LIST_MESSAGES, list_messages, Envelope.RAW, read_only=True,
    )
    add("get_message", "Get a specific message by its ID.", GET_MESSAGE, get_message, read_only=True)

    # --- Conversations ---
    add(
        "list_conversations",
        "List conversations, optionally filtered by phone number(s), user, or date range. "
        "Ordered by most recent activity.",
        LIST_CONVERSATIONS, list_conversations, Envelope.RAW, read_only=True,
    )

    # --- Contacts ---
    add("create_contact", "Create a new contact in the Quo workspace.", CREATE_CONTACT, create_contact)
    add(
        "list_contacts",
        "List contacts in the Quo workspace with optional filtering.",
        LIST_CONTACTS, list_contacts, Envelope.RAW, read_only=True,
    )
    add("get_contact", "Get a specific contact by ID.", GET_CONTACT, get_contact, read_only=True)
    add("update_contact", "Update an existing contact by ID.", UPDATE_CONTACT, update_contact)

    delete_description = "Delete a contact by ID. THIS IS DESTRUCTIVE, use with caution."
    if require_delete_confirmation:
        delete_description += " Requires confirm=true."
    registry.register(
        "delete_contact",
        delete_description,
        DELETE_CONTACT,
        partial(delete_contact, gateway, require_confirmation=require_delete_confirmation),
        envelope=Envelope.MESSAGE,
        destructive=True,
    )
    add(
        "get_contact_custom_fields",
        "List all custom contact fields defined in the workspace (name, key, type). Useful for "
        "understanding what custom data is tracked on contacts.",
        {}, get_contact_custom_fields, read_only=True,
    )

    # --- Calls ---
    add(
        "list_calls",
        "List calls for a specific phone number and participant.",
        LIST_CALLS, list_calls, Envelope.RAW, read_only=True,
    )
    for name, template, description in _CALL_RESOURCES:
        add(name, description, CALL_ID, partial(_call_resource, template), read_only=True)

    # --- Phone numbers ---
    add(
        "list_phone_numbers",
        "List all phone numbers in the Quo workspace, with their users and settings.",
        LIST_PHONE_NUMBERS, list_phone_numbers, read_only=True,
    )
    add(
        "get_phone_number",
        "Get details of a specific phone number by ID, including users, restrictions, and "
        "forwarding settings.",
        GET_PHONE_NUMBER, get_phone_number, read_only=True,
    )

    # --- Users ---
    add("list_users", "List all users in the Quo workspace.", {}, list_users, read_only=True)
    add(
        "get_user",
        "Get a specific user by ID, including their email, name, role, and picture.",
        GET_USER, get_user, read_only=True,
    )

    # --- Webhooks ---
    add("list_webhooks", "List all configured webhooks.", {}, list_webhooks, read_only=True)

    return registry
