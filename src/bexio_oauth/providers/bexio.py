from .oauth import OAuth2Provider


class BexioProvider(OAuth2Provider):
    id = "bexio"

    authorization_endpoint = (
        "https://auth.bexio.com/realms/bexio/protocol/openid-connect/auth"
    )
    token_endpoint = "https://auth.bexio.com/realms/bexio/protocol/openid-connect/token"
    user_info_endpoint = "https://api.bexio.com/3.0/users/me"

    allowed_scopes = [
        "openid",
        "profile",
        "email",
        "offline_access",
        "company_profile",
        "contact_show",
        "contact_edit",
        "project_show",
        "project_edit",
        "accounting",
        "monitoring_show",
        "monitoring_edit",
    ]
    default_scopes = ["openid", "profile", "email", "offline_access"]

