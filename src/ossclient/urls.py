"""Public (unsigned) URLs for objects, for display and CDN links."""

INTERNAL_SUFFIX = "-internal.aliyuncs.com"
PUBLIC_SUFFIX = ".aliyuncs.com"


class PublicUrlGenerator:
    """Builds public object URLs for one bucket.

    With a CNAME domain configured and enabled, URLs point at that domain.
    Otherwise they use the bucket's virtual-hosted endpoint, rewritten to
    the internal (VPC) endpoint when ``internal`` is set.
    """

    def __init__(
        self,
        endpoint: str,
        bucket: str,
        prefix: str = "",
        public_domain: str | None = None,
        cname_enabled: bool = False,
        internal: bool = False,
    ) -> None:
        self.endpoint = endpoint
        self.bucket = bucket
        self.prefix = prefix
        self.public_domain = public_domain
        self.cname_enabled = cname_enabled
        self.internal = internal

    def generate_url(self, key: str) -> str:
        clean_key = key.lstrip("/")
        full_key = f"{self.prefix}/{clean_key}" if self.prefix else clean_key
        return f"https://{self.get_host()}/{full_key}"

    def get_host(self) -> str:
        if self.cname_enabled and self.public_domain:
            return self.public_domain
        return f"{self.bucket}.{self._effective_endpoint()}"

    def _effective_endpoint(self) -> str:
        if not self.internal or "-internal." in self.endpoint:
            return self.endpoint
        return self.endpoint.replace(PUBLIC_SUFFIX, INTERNAL_SUFFIX)
