"""
The entity kinds served by the API.

Collection names double as the document store "schema": collections are
created on first write, so these declarations are the single source of truth.
"""

from __future__ import annotations

from wedding_api.media import AUDIO_POLICY, IMAGE_POLICY
from wedding_api.resources import JoinSpec, MediaField, ResourceKind

INVITATION_STATUSES = ("pending", "attending", "declined")

BANK_ACCOUNTS_COLLECTION = "bankAccounts"

INVITATIONS = ResourceKind(
    name="invitation",
    label="Invitation",
    collection="invitations",
    path="/invitations",
    required=("name", "status", "message"),
    update_required=("status", "message"),
    choices={"status": INVITATION_STATUSES},
    # Guests submit their own RSVP without an account.
    public_create=True,
)

GALLERY = ResourceKind(
    name="gallery",
    label="Gallery Photo",
    collection="imageGallery",
    path="/gallery",
    media=MediaField(url_field="imageUrl", policy=IMAGE_POLICY),
    legacy_paths={
        "create": "/uploadGallery",
        "list": "/getGallery",
        "delete": "/deleteGallery",
    },
)

GUESTS = ResourceKind(
    name="guest",
    label="Guest",
    collection="guests",
    path="/guests",
    required=("guestName", "referralUrl"),
    update_optional=("guestName", "referralUrl"),
    newest_first=True,
)


def _schedule(slot: str, label: str) -> ResourceKind:
    return ResourceKind(
        name=f"{slot}_schedule",
        label=f"{label} schedule",
        collection=f"{slot}Schedule",
        path=f"/schedules/{slot}",
        required=("date", "time", "venue"),
        optional=("endTime",),
        update_required=("date", "time"),
        update_optional=("endTime", "venue"),
    )


def _map_link(slot: str, label: str) -> ResourceKind:
    return ResourceKind(
        name=f"{slot}_map",
        label=f"{label} map link",
        collection=f"{slot}Map",
        path=f"/maps/{slot}",
        required=("url",),
        update_required=("url",),
    )


def _profile(slot: str, label: str) -> ResourceKind:
    # caption: display name, label: parents line, linkUrl: social profile
    return ResourceKind(
        name=f"{slot}_profile",
        label=f"{label} profile",
        collection=f"{slot}Profile",
        path=f"/profiles/{slot}",
        required=("caption",),
        optional=("label", "linkUrl"),
        update_optional=("caption", "label", "linkUrl"),
        media=MediaField(url_field="assetUrl", policy=IMAGE_POLICY),
    )


def _story(slot: int) -> ResourceKind:
    return ResourceKind(
        name=f"story_{slot}",
        label=f"Story photo {slot}",
        collection=f"storyPhotos{slot}",
        path=f"/stories/{slot}",
        optional=("caption",),
        update_optional=("caption",),
        media=MediaField(url_field="assetUrl", policy=IMAGE_POLICY),
    )


def _transfer_target(slot: int) -> ResourceKind:
    return ResourceKind(
        name=f"transfer_{slot}",
        label=f"Transfer target {slot}",
        collection=f"transferTargets{slot}",
        path=f"/transfers/{slot}",
        required=("accountHolderName", "accountNumber", "bankAccountRef"),
        update_required=("accountHolderName", "accountNumber"),
        update_optional=("bankAccountRef",),
        join=JoinSpec(
            ref_field="bankAccountRef",
            collection=BANK_ACCOUNTS_COLLECTION,
            fields=("bankName", "logoUrl"),
            as_field="bank",
        ),
    )


CEREMONY_SCHEDULE = _schedule("ceremony", "Ceremony")
RECEPTION_SCHEDULE = _schedule("reception", "Reception")
CEREMONY_MAP = _map_link("ceremony", "Ceremony")
RECEPTION_MAP = _map_link("reception", "Reception")
BRIDE_PROFILE = _profile("bride", "Bride")
GROOM_PROFILE = _profile("groom", "Groom")

COVER = ResourceKind(
    name="cover",
    label="Cover photo",
    collection="coverPhoto",
    path="/cover",
    optional=("caption",),
    update_optional=("caption",),
    media=MediaField(url_field="assetUrl", policy=IMAGE_POLICY),
)

STORIES = tuple(_story(slot) for slot in (1, 2, 3))

BANK_ACCOUNTS = ResourceKind(
    name="bank_account",
    label="Bank account",
    collection=BANK_ACCOUNTS_COLLECTION,
    path="/banks",
    required=("bankName",),
    update_optional=("bankName",),
    media=MediaField(url_field="logoUrl", policy=IMAGE_POLICY),
)

TRANSFER_TARGETS = tuple(_transfer_target(slot) for slot in (1, 2))

GIFTS = ResourceKind(
    name="gift",
    label="Gift item",
    collection="giftItems",
    path="/gifts",
    optional=("caption", "label", "linkUrl"),
    update_optional=("caption", "label", "linkUrl"),
    media=MediaField(url_field="assetUrl", policy=IMAGE_POLICY),
)

AUDIO = ResourceKind(
    name="audio",
    label="Background audio",
    collection="backgroundAudio",
    path="/audio",
    optional=("label",),
    update_optional=("label",),
    media=MediaField(url_field="assetUrl", policy=AUDIO_POLICY),
)

ALL_KINDS: tuple[ResourceKind, ...] = (
    INVITATIONS,
    GALLERY,
    GUESTS,
    CEREMONY_SCHEDULE,
    RECEPTION_SCHEDULE,
    CEREMONY_MAP,
    RECEPTION_MAP,
    BRIDE_PROFILE,
    GROOM_PROFILE,
    COVER,
    *STORIES,
    BANK_ACCOUNTS,
    *TRANSFER_TARGETS,
    GIFTS,
    AUDIO,
)
