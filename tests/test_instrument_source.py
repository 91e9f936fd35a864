"""Tests for loading the instrument universe."""

import pytest
from aiohttp import web
from aiohttp.test_utils import TestServer

from kitebackfill.exceptions import TransientFetchError
from kitebackfill.fetchers.instrument_source import InstrumentSource, filter_instruments, parse_instruments_csv

DUMP = """instrument_token,exchange_token,tradingsymbol,name,last_price,expiry,strike,tick_size,lot_size,instrument_type,segment,exchange
256265,1001,NIFTY24JANFUT,NIFTY,0,2024-01-25,0,0.05,50,FUT,NFO-FUT,NFO
260105,1016,BANKNIFTY24JANFUT,BANKNIFTY,0,2024-01-25,0,0.05,15,FUT,NFO-FUT,NFO
12345,48,NIFTY24JAN21500CE,NIFTY,0,2024-01-25,21500,0.05,50,CE,NFO-OPT,NFO
99999,390,RELIANCE24JANFUT,RELIANCE,0,2024-01-25,0,0.05,250,FUT,NFO-FUT,NFO
257801,1007,FINNIFTY24JANFUT,FINNIFTY,0,,0,0.05,40,FUT,NFO-FUT,NFO
"""


def test_parse_drops_useless_columns():
    df = parse_instruments_csv(DUMP)

    assert 'last_price' not in df.columns
    assert 'exchange_token' not in df.columns
    assert 'exchange' not in df.columns
    assert len(df) == 5


def test_filter_keeps_configured_names():
    instruments = filter_instruments(parse_instruments_csv(DUMP), ["NIFTY", "BANKNIFTY", "FINNIFTY"])

    assert [i.tradingsymbol for i in instruments] == [
        "NIFTY24JANFUT", "BANKNIFTY24JANFUT", "NIFTY24JAN21500CE", "FINNIFTY24JANFUT"
    ]
    option = instruments[2]
    assert option.instrument_token == 12345
    assert option.strike == 21500.0
    assert option.lot_size == 50
    assert option.instrument_type == "CE"
    assert option.exchange == "NFO"


def test_exchange_comes_from_the_request():
    instruments = filter_instruments(parse_instruments_csv(DUMP), ["NIFTY"], exchange="BFO")

    assert {i.exchange for i in instruments} == {"BFO"}


def test_missing_expiry_is_none():
    instruments = filter_instruments(parse_instruments_csv(DUMP), ["finnifty"])

    assert len(instruments) == 1
    assert instruments[0].expiry is None


def _app(status=200, body=DUMP):
    async def dump(request):
        return web.Response(status=status, text=body, content_type="text/csv")

    app = web.Application()
    app.router.add_get('/instruments/{exchange}', dump)
    return app


@pytest.mark.integration
@pytest.mark.asyncio
async def test_load_downloads_and_filters():
    async with TestServer(_app()) as server:
        source = InstrumentSource("t", base_url=str(server.make_url('')), names=["BANKNIFTY"])
        instruments = await source.load()

    assert [i.tradingsymbol for i in instruments] == ["BANKNIFTY24JANFUT"]


@pytest.mark.integration
@pytest.mark.asyncio
async def test_load_http_error_is_transient():
    async with TestServer(_app(status=502, body="bad gateway")) as server:
        source = InstrumentSource("t", base_url=str(server.make_url('')))
        with pytest.raises(TransientFetchError):
            await source.load()
