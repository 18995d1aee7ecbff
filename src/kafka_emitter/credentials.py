import asyncio
import logging
from concurrent.futures import ThreadPoolExecutor
from typing import Tuple

from aiokafka.abc import AbstractTokenProvider
from aws_msk_iam_sasl_signer import MSKAuthTokenProvider

from .errors import CredentialError

logger = logging.getLogger(__name__)

DEFAULT_TOKEN_TIMEOUT_S = 10.0


def redact_token(token: str, visible: int = 6) -> str:
    if len(token) <= visible * 2:
        return "..."
    return f"{token[:visible]}...{token[-visible:]}"


class MSKTokenProvider(AbstractTokenProvider):
    """
    OAUTHBEARER token provider for MSK IAM auth.

    aiokafka awaits `token()` whenever a broker connection authenticates. The
    signer makes a blocking call to the AWS credential chain, so each call runs
    on its own short-lived worker thread and only that thread blocks. A call
    that outlives its timeout is abandoned on its thread and does not hold up
    later calls. Nothing is cached, every call generates a fresh token.
    """

    def __init__(self, region: str, timeout_s: float = DEFAULT_TOKEN_TIMEOUT_S):
        super().__init__()
        self.region = region
        self.timeout_s = timeout_s

    def _generate(self) -> Tuple[str, int]:
        return MSKAuthTokenProvider.generate_auth_token(self.region)

    async def fetch_token(self) -> Tuple[str, int]:
        """
        Generate a token for the configured region.

        Returns:
            (token, expiry time in epoch milliseconds)

        Raises:
            CredentialError: generation failed or took longer than timeout_s.
                Not retried here, the broker client retries authentication
                on its own schedule.
        """
        loop = asyncio.get_running_loop()
        executor = ThreadPoolExecutor(max_workers=1, thread_name_prefix="msk-token")

        try:
            token, expiration_time_ms = await asyncio.wait_for(
                loop.run_in_executor(executor, self._generate),
                timeout=self.timeout_s,
            )
        except asyncio.TimeoutError as e:
            raise CredentialError(
                f"timed out generating auth token for region {self.region} after {self.timeout_s}s"
            ) from e
        except Exception as e:
            raise CredentialError(
                f"failed to generate auth token for region {self.region}: {e}"
            ) from e
        finally:
            executor.shutdown(wait=False)

        logger.info(
            f"Generated token {redact_token(token)} expiration_time_ms={expiration_time_ms}"
        )

        return token, expiration_time_ms

    async def token(self) -> str:
        token, _ = await self.fetch_token()
        return token


__all__ = ["MSKTokenProvider", "redact_token"]
