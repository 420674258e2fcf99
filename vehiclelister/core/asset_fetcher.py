"""
图片获取模块：对每个 URL 依次尝试多种手段拿到二进制数据。

手段链（首个成功即停）：
1. 直接 HTTP 获取
2. 经 CORS 中转代理获取
3. 页面内 Image + canvas 栅格化（允许被动渲染、但拒绝程序化读取的图片）

单张失败不影响整批，返回结果与输入顺序一一对应。
"""

from __future__ import annotations

import base64
import time
from dataclasses import dataclass
from typing import Callable, Optional, Protocol, Sequence

import httpx

from .errors import AssetFailure

LogFn = Callable[[str, str], None]

DEFAULT_CONTENT_TYPE = "image/jpeg"
FETCH_HEADERS = {
    "Accept": "image/avif,image/webp,image/apng,image/*,*/*;q=0.8",
    "Cache-Control": "no-cache",
    "Pragma": "no-cache",
    "User-Agent": "Mozilla/5.0 (VehicleLister image fetch)",
}

_EXTENSIONS = {
    "image/jpeg": "jpg",
    "image/jpg": "jpg",
    "image/png": "png",
    "image/webp": "webp",
    "image/gif": "gif",
    "image/avif": "avif",
}

JS_RASTERIZE_IMAGE = """
({ url, timeoutMs, fallbackWidth, fallbackHeight, quality }) => new Promise((resolve, reject) => {
  const img = new Image();
  img.crossOrigin = "anonymous";
  const timer = setTimeout(() => reject(new Error("Image loading timed out")), timeoutMs);
  img.onload = () => {
    clearTimeout(timer);
    try {
      const canvas = document.createElement("canvas");
      canvas.width = img.naturalWidth || fallbackWidth;
      canvas.height = img.naturalHeight || fallbackHeight;
      canvas.getContext("2d").drawImage(img, 0, 0);
      resolve(canvas.toDataURL("image/jpeg", quality));
    } catch (err) {
      reject(new Error("Canvas export failed: " + err.message));
    }
  };
  img.onerror = () => {
    clearTimeout(timer);
    reject(new Error("Image loading failed"));
  };
  img.src = url;
})
"""


@dataclass
class AssetResult:
    url: str
    ok: bool
    data: bytes | None = None
    content_type: str | None = None
    technique: str | None = None
    error: str | None = None

    @property
    def extension(self) -> str:
        return _EXTENSIONS.get((self.content_type or "").lower(), "jpg")


class AssetTechnique(Protocol):
    name: str

    def acquire(self, url: str) -> tuple[bytes, str]:
        """返回 (payload, content_type)，失败抛 AssetFailure。"""
        ...


def _content_type(response: httpx.Response) -> str:
    raw = response.headers.get("content-type", "")
    value = raw.split(";")[0].strip().lower()
    if not value or not value.startswith("image/"):
        return DEFAULT_CONTENT_TYPE
    return value


class DirectFetch:
    name = "direct"

    def __init__(
        self,
        client: httpx.Client,
        *,
        timeout_ms: int = 10000,
        clock: Callable[[], float] = time.monotonic,
    ) -> None:
        self._client = client
        self._timeout = max(0.1, timeout_ms / 1000.0)
        self._clock = clock

    def target_url(self, url: str) -> str:
        return url

    def acquire(self, url: str) -> tuple[bytes, str]:
        """
        流式读取响应体；httpx 的 timeout 只限制单次连接/读取，
        整体耗时另按 deadline 检查，超时即放弃。
        """
        deadline = self._clock() + self._timeout
        try:
            with self._client.stream(
                "GET", self.target_url(url), timeout=self._timeout
            ) as resp:
                if not resp.is_success:
                    raise AssetFailure(f"HTTP {resp.status_code}")
                chunks: list[bytes] = []
                for chunk in resp.iter_bytes():
                    chunks.append(chunk)
                    if self._clock() > deadline:
                        raise AssetFailure(
                            f"download exceeded {self._timeout:.1f}s"
                        )
                content_type = _content_type(resp)
        except httpx.HTTPError as exc:
            raise AssetFailure(f"{type(exc).__name__}: {exc}") from exc
        data = b"".join(chunks)
        if not data:
            raise AssetFailure("empty body")
        return data, content_type


class ProxyFetch(DirectFetch):
    name = "cors_proxy"

    def __init__(
        self, client: httpx.Client, proxy_prefix: str, *, timeout_ms: int = 10000
    ) -> None:
        super().__init__(client, timeout_ms=timeout_ms)
        self._prefix = proxy_prefix

    def target_url(self, url: str) -> str:
        return f"{self._prefix}{url}"


class CanvasRasterize:
    name = "canvas"

    def __init__(
        self,
        page,
        *,
        timeout_ms: int = 10000,
        fallback_size: tuple[int, int] = (800, 600),
        quality: float = 0.75,
    ) -> None:
        self._page = page
        self._timeout_ms = timeout_ms
        self._fallback_size = fallback_size
        self._quality = quality

    def acquire(self, url: str) -> tuple[bytes, str]:
        try:
            data_url = self._page.evaluate(
                JS_RASTERIZE_IMAGE,
                {
                    "url": url,
                    "timeoutMs": self._timeout_ms,
                    "fallbackWidth": self._fallback_size[0],
                    "fallbackHeight": self._fallback_size[1],
                    "quality": self._quality,
                },
            )
        except Exception as exc:
            raise AssetFailure(str(exc).splitlines()[0] if str(exc) else "canvas error") from exc
        return decode_data_url(data_url)


def decode_data_url(data_url) -> tuple[bytes, str]:
    if not isinstance(data_url, str) or not data_url.startswith("data:"):
        raise AssetFailure("canvas returned no data url")
    header, _, payload = data_url.partition(",")
    if ";base64" not in header or not payload:
        raise AssetFailure("canvas returned an empty image")
    content_type = header[5:].split(";")[0] or DEFAULT_CONTENT_TYPE
    try:
        data = base64.b64decode(payload, validate=True)
    except ValueError as exc:
        raise AssetFailure(f"bad base64 payload: {exc}") from exc
    if not data:
        raise AssetFailure("canvas returned an empty image")
    return data, content_type


class AssetFetcher:
    """
    按输入顺序逐个获取，结果数量 = min(len(urls), cap)。
    任何异常都转成失败结果，fetch() 不会抛出。
    """

    def __init__(
        self,
        techniques: Sequence[AssetTechnique],
        *,
        cap: int = 5,
        log_fn: Optional[LogFn] = None,
        client: httpx.Client | None = None,
    ) -> None:
        self._techniques = list(techniques)
        self._cap = max(0, int(cap))
        self._log = log_fn or (lambda msg, level="info": None)
        self._client = client

    @classmethod
    def for_page(
        cls,
        page,
        *,
        cap: int = 5,
        timeout_ms: int = 10000,
        proxy_prefix: str = "",
        client: httpx.Client | None = None,
        log_fn: Optional[LogFn] = None,
    ) -> "AssetFetcher":
        owned = client is None
        http = client or httpx.Client(
            follow_redirects=True, headers=FETCH_HEADERS
        )
        techniques: list[AssetTechnique] = [DirectFetch(http, timeout_ms=timeout_ms)]
        if proxy_prefix:
            techniques.append(ProxyFetch(http, proxy_prefix, timeout_ms=timeout_ms))
        techniques.append(CanvasRasterize(page, timeout_ms=timeout_ms))
        return cls(techniques, cap=cap, log_fn=log_fn, client=http if owned else None)

    def close(self) -> None:
        if self._client is not None:
            self._client.close()
            self._client = None

    def fetch(self, urls: Sequence[str]) -> list[AssetResult]:
        picked = list(urls or [])[: self._cap]
        results: list[AssetResult] = []
        for idx, url in enumerate(picked, start=1):
            results.append(self._fetch_one(idx, len(picked), url))
        ok_count = sum(1 for r in results if r.ok)
        self._log(f"🖼 图片获取完成: {ok_count}/{len(results)}", "info")
        return results

    def _fetch_one(self, idx: int, total: int, url: str) -> AssetResult:
        url = (url or "").strip()
        if not url:
            return AssetResult(url=url, ok=False, error="empty url")
        self._log(f"   ⬇ 下载图片 {idx}/{total}: {url}", "info")
        reasons: list[str] = []
        for technique in self._techniques:
            try:
                data, content_type = technique.acquire(url)
            except Exception as exc:
                reasons.append(f"{technique.name}: {exc}")
                self._log(f"   ⚠️ {technique.name} 失败 ({idx}/{total}): {exc}", "warn")
                continue
            return AssetResult(
                url=url,
                ok=True,
                data=data,
                content_type=content_type,
                technique=technique.name,
            )
        return AssetResult(url=url, ok=False, error="; ".join(reasons) or "no technique")
