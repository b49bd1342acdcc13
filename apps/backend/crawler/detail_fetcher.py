"""
Fetch the full description text of a single posting.
"""
import logging
from typing import Optional, Tuple

from playwright.async_api import TimeoutError as PlaywrightTimeoutError

from core.outcomes import FailureKind

logger = logging.getLogger(__name__)

USER_AGENT = 'Mozilla/5.0 (Windows NT 10.0; Win64; x64) AppleWebKit/537.36 (KHTML, like Gecko) Chrome/120.0.0.0 Safari/537.36'
ACCEPT_LANGUAGE = 'pt-BR,pt;q=0.9,en-US;q=0.8,en;q=0.7'

# Priority order: first match wins
DESCRIPTION_SELECTORS = (
    '.show-more-less-html__markup',
    '.description__text',
    '#job-details',
)

NAVIGATION_TIMEOUT_MS = 30000
SELECTOR_TIMEOUT_MS = 5000


class DetailFetcher:
    """Opens a posting page in the shared session and extracts its description."""

    def __init__(self, session, navigation_timeout_ms: int = NAVIGATION_TIMEOUT_MS,
                 selector_timeout_ms: int = SELECTOR_TIMEOUT_MS):
        self.session = session
        self.navigation_timeout_ms = navigation_timeout_ms
        self.selector_timeout_ms = selector_timeout_ms

    async def fetch(self, url: str) -> Optional[str]:
        """
        Return the trimmed description text, or None on any failure.

        Never raises.
        """
        text, kind = await self.fetch_with_reason(url)
        if text is None and kind is not None:
            logger.warning(f"[detail] No description for {url} ({kind.value})")
        return text

    async def fetch_with_reason(self, url: str) -> Tuple[Optional[str], Optional[FailureKind]]:
        page = None
        try:
            page = await self.session.new_page()
            await page.set_extra_http_headers({
                'User-Agent': USER_AGENT,
                'Accept-Language': ACCEPT_LANGUAGE,
            })

            await page.goto(url, wait_until='domcontentloaded', timeout=self.navigation_timeout_ms)

            try:
                await page.wait_for_selector(', '.join(DESCRIPTION_SELECTORS), timeout=self.selector_timeout_ms)
            except PlaywrightTimeoutError:
                logger.debug(f"[detail] Selector timeout for {url}")

            for selector in DESCRIPTION_SELECTORS:
                element = await page.query_selector(selector)
                if element is None:
                    continue
                text = (await element.inner_text()).strip()
                if text:
                    return text, None

            return None, FailureKind.SELECTOR_MISSING

        except PlaywrightTimeoutError as e:
            logger.debug(f"[detail] Navigation timeout for {url}: {e}")
            return None, FailureKind.NAVIGATION_TIMEOUT
        except Exception as e:
            logger.error(f"[detail] Failed to fetch description for {url}: {e}")
            return None, FailureKind.UNEXPECTED
        finally:
            if page is not None:
                try:
                    await page.close()
                except Exception as e:
                    logger.debug(f"[detail] Error closing page: {e}")
