"""
Instrument Source

Downloads the Kite instrument dump for one exchange and narrows it to the
configured underlyings (NIFTY, BANKNIFTY and FINNIFTY by default).
"""

import asyncio
import io
import aiohttp
import pandas as pd
from typing import Iterable, List, Optional

from loguru import logger

from kitebackfill.exceptions import TransientFetchError
from kitebackfill.models.data_models import Instrument

# last_price is always 0 in the dump, exchange is the one we asked for and
# exchange_token is useless for history
DROPPED_COLUMNS = ['last_price', 'exchange', 'exchange_token']


def _optional(value):
    if value is None or (isinstance(value, float) and pd.isna(value)):
        return None
    if isinstance(value, str) and not value.strip():
        return None
    return value


def parse_instruments_csv(text: str) -> pd.DataFrame:
    """Parse the instrument dump CSV, keeping every column as text"""
    df = pd.read_csv(io.StringIO(text), dtype=str, keep_default_na=False)
    return df.drop(columns=[c for c in DROPPED_COLUMNS if c in df.columns])


def filter_instruments(df: pd.DataFrame, names: Iterable[str], exchange: str = "NFO") -> List[Instrument]:
    """Rows whose ``name`` is one of ``names``, as Instrument objects on ``exchange``"""
    wanted = {name.upper() for name in names}
    if df.empty:
        return []

    selected = df[df['name'].str.upper().isin(wanted)]
    instruments = []

    for _, row in selected.iterrows():
        try:
            strike = _optional(row.get('strike'))
            tick_size = _optional(row.get('tick_size'))
            lot_size = _optional(row.get('lot_size'))

            instruments.append(Instrument(
                instrument_token=int(row['instrument_token']),
                name=row['name'],
                tradingsymbol=row['tradingsymbol'],
                expiry=_optional(row.get('expiry')),
                exchange=exchange,
                instrument_type=_optional(row.get('instrument_type')),
                segment=_optional(row.get('segment')),
                strike=float(strike) if strike is not None else None,
                tick_size=float(tick_size) if tick_size is not None else None,
                lot_size=int(float(lot_size)) if lot_size is not None else None
            ))
        except (ValueError, TypeError, KeyError) as e:
            logger.warning(f"Skipping malformed instrument row {dict(row)}: {e}")
            continue

    return instruments


class InstrumentSource:
    """Loads the instrument universe from ``GET /instruments/{exchange}``"""

    def __init__(
        self,
        auth_token: str,
        base_url: str = "https://api.kite.trade",
        exchange: str = "NFO",
        names: Optional[Iterable[str]] = None,
        timeout: float = 60.0,
        session: Optional[aiohttp.ClientSession] = None
    ):
        self.auth_token = auth_token
        self.base_url = base_url.rstrip('/')
        self.exchange = exchange
        self.names = list(names or ['NIFTY', 'BANKNIFTY', 'FINNIFTY'])
        self.timeout = timeout
        self.session = session

    @classmethod
    def from_settings(cls, settings, session: Optional[aiohttp.ClientSession] = None) -> 'InstrumentSource':
        return cls(
            auth_token=settings.kite_auth_token,
            base_url=settings.kite_base_url,
            exchange=settings.instrument_exchange,
            names=settings.instrument_names,
            timeout=settings.request_timeout,
            session=session
        )

    async def fetch_csv(self) -> str:
        url = f"{self.base_url}/instruments/{self.exchange}"
        logger.info(f"Fetching {url}")

        headers = {'X-Kite-Version': '3', 'Authorization': self.auth_token}
        session = self.session or aiohttp.ClientSession(timeout=aiohttp.ClientTimeout(total=self.timeout))

        try:
            async with session.get(url, headers=headers) as response:
                if response.status != 200:
                    error_text = await response.text()
                    raise TransientFetchError(
                        f"Instrument dump HTTP {response.status}: {error_text[:200]}", response.status
                    )
                return await response.text()
        except aiohttp.ClientError as e:
            raise TransientFetchError(f"Network error: {e}") from e
        except asyncio.TimeoutError as e:
            raise TransientFetchError("Instrument dump request timeout") from e
        finally:
            if self.session is None:
                await session.close()

    async def load(self) -> List[Instrument]:
        """Download, parse and filter the instrument dump"""
        text = await self.fetch_csv()
        df = parse_instruments_csv(text)
        instruments = filter_instruments(df, self.names, self.exchange)

        logger.info(
            f"Loaded {len(instruments):,} instruments for {', '.join(self.names)} "
            f"out of {len(df):,} rows on {self.exchange}"
        )
        return instruments
