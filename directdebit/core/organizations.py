from dataclasses import dataclass, field
from typing import Dict, List, Optional, Tuple

from directdebit.settings import settings

USER = "user"
ADVISOR = "advisor"
FORM_VARIANTS = (USER, ADVISOR)
DEFAULT_FORM_VARIANT = ADVISOR


@dataclass(frozen=True)
class FormVariantSpec:
    """
    One (formVariant, organization) combination on the verification service.
    display_flags are hints for the external form; they are sent verbatim and
    in order because the service matches them literally.
    """
    path: str
    display_flags: Tuple[Tuple[str, str], ...]

    def flags_for(self, customer_number: str) -> List[Tuple[str, str]]:
        return [(k, v.format(customer_number=customer_number)) for k, v in self.display_flags]


@dataclass(frozen=True)
class OrganizationSpec:
    prefix: str
    organization: str
    variants: Dict[str, FormVariantSpec] = field(default_factory=dict)

    def secret_path(self, env: Optional[str] = None) -> str:
        return f"/forms/{self.organization}/{env or settings.SECRET_ENV}/ThirdPartySharedSecret"

    def variant(self, form_variant: str) -> FormVariantSpec:
        return self.variants[form_variant]


_USER_FLAGS = (
    ("DdPlanReference", "{customer_number}"),
    ("showddplanreference", "visible"),
    ("showdob", "hidden"),
    ("showmobile", "hidden"),
)

_ADVISOR_FLAGS = (
    ("DdPlanReference", "{customer_number}"),
    ("showddplanfields", "hidden"),
    ("applyingascompany", "false"),
    ("showapplyingascompanycheck", "hidden"),
    ("showdob", "hidden"),
    ("showmobile", "hidden"),
)


def _org(prefix: str, organization: str) -> OrganizationSpec:
    return OrganizationSpec(
        prefix=prefix,
        organization=organization,
        variants={
            USER: FormVariantSpec(path=f"{organization}/customer", display_flags=_USER_FLAGS),
            ADVISOR: FormVariantSpec(path=f"{organization}/agent", display_flags=_ADVISOR_FLAGS),
        },
    )


# Prefix spaces must not overlap: organization is a pure function of the prefix.
ORGANIZATIONS: Tuple[OrganizationSpec, ...] = (
    _org("1000", "council-a"),
    _org("2000", "council-b"),
)

ORGANIZATION_NAMES = tuple(o.organization for o in ORGANIZATIONS)
CUSTOMER_NUMBER_PREFIXES = tuple(o.prefix for o in ORGANIZATIONS)


def organization_for(customer_number: str) -> Optional[OrganizationSpec]:
    for spec in ORGANIZATIONS:
        if customer_number.startswith(spec.prefix):
            return spec
    return None


def get_organization(name: str) -> Optional[OrganizationSpec]:
    for spec in ORGANIZATIONS:
        if spec.organization == name:
            return spec
    return None


def endpoint_url(spec: OrganizationSpec, form_variant: str, base_url: Optional[str] = None) -> str:
    base = (base_url or settings.VERIFICATION_BASE_URL).rstrip("/")
    return f"{base}/{spec.variant(form_variant).path}"
