"""LTI 1.3 claim names, message types, roles and service scopes."""

LTI_VERSION = "1.3.0"

MESSAGE_TYPE_RESOURCE_LINK = "LtiResourceLinkRequest"
MESSAGE_TYPE_DEEP_LINKING_REQUEST = "LtiDeepLinkingRequest"
MESSAGE_TYPE_DEEP_LINKING_RESPONSE = "LtiDeepLinkingResponse"

_LTI = "https://purl.imsglobal.org/spec/lti/claim"
_LTI_DL = "https://purl.imsglobal.org/spec/lti-dl/claim"
_LTI_AGS = "https://purl.imsglobal.org/spec/lti-ags"

CLAIM_MESSAGE_TYPE = f"{_LTI}/message_type"
CLAIM_VERSION = f"{_LTI}/version"
CLAIM_DEPLOYMENT_ID = f"{_LTI}/deployment_id"
CLAIM_TARGET_LINK_URI = f"{_LTI}/target_link_uri"
CLAIM_ROLES = f"{_LTI}/roles"
CLAIM_CONTEXT = f"{_LTI}/context"
CLAIM_RESOURCE_LINK = f"{_LTI}/resource_link"
CLAIM_CUSTOM = f"{_LTI}/custom"
CLAIM_TOOL_PLATFORM = f"{_LTI}/tool_platform"
CLAIM_DL_SETTINGS = f"{_LTI_DL}/deep_linking_settings"
CLAIM_DL_CONTENT_ITEMS = f"{_LTI_DL}/content_items"
CLAIM_DL_DATA = f"{_LTI_DL}/data"
CLAIM_AGS_ENDPOINT = f"{_LTI_AGS}/claim/endpoint"
CLAIM_UPDATE_DISCUSSION_URL = (
    "https://kialo-edu.com/lti/claim/update_discussion_url_endpoint"
)
CLAIM_REGISTRATION_ID = "registration_id"
CLAIM_PLUGIN_VERSION = "kialo_plugin_version"

ROLE_INSTRUCTOR = "http://purl.imsglobal.org/vocab/lis/v2/membership#Instructor"
ROLE_LEARNER = "http://purl.imsglobal.org/vocab/lis/v2/membership#Learner"

SCOPE_AGS_LINEITEM = f"{_LTI_AGS}/scope/lineitem"
SCOPE_AGS_LINEITEM_READONLY = f"{_LTI_AGS}/scope/lineitem.readonly"
SCOPE_AGS_RESULT_READONLY = f"{_LTI_AGS}/scope/result.readonly"
SCOPE_AGS_SCORE = f"{_LTI_AGS}/scope/score"
AGS_SCOPES = [
    SCOPE_AGS_LINEITEM,
    SCOPE_AGS_LINEITEM_READONLY,
    SCOPE_AGS_RESULT_READONLY,
    SCOPE_AGS_SCORE,
]
SCOPE_UPDATE_DISCUSSION_URL = "https://kialo-edu.com/lti/scope/update_discussion_url"
SERVICE_SCOPES = [*AGS_SCOPES, SCOPE_UPDATE_DISCUSSION_URL]

CONTENT_TYPE_RESOURCE_LINK = "ltiResourceLink"
PRESENTATION_TARGET_WINDOW = "window"

PLATFORM_GUID = "kialo-moodle-plugin"
PRODUCT_FAMILY_CODE = "moodle"

CUSTOM_GROUP_ID = "kialoGroupId"
CUSTOM_GROUP_NAME = "kialoGroupName"

GRANT_TYPE_CLIENT_CREDENTIALS = "client_credentials"
CLIENT_ASSERTION_TYPE_JWT_BEARER = (
    "urn:ietf:params:oauth:client-assertion-type:jwt-bearer"
)

RESOURCE_LINK_PREFIX = "resource-link-"
