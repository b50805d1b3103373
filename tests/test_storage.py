"""
Tests for the page map and the mirroring storage backends.
"""

import json
from unittest.mock import AsyncMock

import pytest
import redis.asyncio as redis

from crawlgraph.crawler.page import PageRecord
from crawlgraph.storage.database import (
    FileStorageBackend, RedisStorageBackend, StorageError, create_storage_backend
)
from crawlgraph.storage.page_map import PageMap
from crawlgraph.utils.config import StorageConfig


def record(url, depth=0, referer=None, **kwargs):
    return PageRecord(url=url, depth=depth, referer=referer, **kwargs)


class TestPageMap:

    def test_one_record_per_url(self):
        pages = PageMap()
        pages.add(record('http://a.test/'))

        with pytest.raises(ValueError):
            pages.add(record('http://a.test/', depth=1))

    def test_mapping_interface(self):
        pages = PageMap()
        pages.add(record('http://a.test/'))
        pages.add(record('http://a.test/x', 1, 'http://a.test/'))

        assert len(pages) == 2
        assert 'http://a.test/x' in pages
        assert pages.get('http://a.test/missing') is None
        assert set(pages.keys()) == {'http://a.test/', 'http://a.test/x'}

    def test_redirect_chain_stops_on_cycles(self):
        pages = PageMap()
        pages.add(record('http://a.test/1', redirected_to='http://a.test/2'))
        pages.add(record('http://a.test/2', redirected_to='http://a.test/1'))

        assert [p.url for p in pages.redirect_chain('http://a.test/1')] == ['http://a.test/1', 'http://a.test/2']
        assert pages.redirect_chain('http://a.test/missing') == []

    def test_to_dict_omits_document(self):
        pages = PageMap()
        pages.add(record('http://a.test/', links=('http://a.test/x',), doc=object(), body='<html/>'))

        data = pages.to_dict()['http://a.test/']

        assert data['links'] == ['http://a.test/x']
        assert data['body'] == '<html/>'
        assert 'doc' not in data
        json.dumps(data)


class TestPageRecord:

    def test_without_body_keeps_graph_fields(self):
        page = record('http://a.test/', links=('http://a.test/x',), body='<html/>', doc=object(),
                      content_type='text/html')

        stripped = page.without_body()

        assert stripped.body is None and stripped.doc is None
        assert stripped.links == page.links
        assert page.body == '<html/>'

    def test_round_trip_through_dict(self):
        page = record('http://a.test/x', 2, 'http://a.test/', status_code=301,
                      redirected_to='http://a.test/y')

        assert PageRecord.from_dict(page.to_dict()) == page

    def test_flags(self):
        assert record('http://a.test/', content_type='text/html; charset=utf-8').is_html
        assert not record('http://a.test/', fetch_error='HTTP 500').ok
        assert record('http://a.test/', redirected_to='http://a.test/b').is_redirect


@pytest.mark.asyncio
class TestFileStorageBackend:

    async def test_store_and_get(self, tmp_path):
        backend = FileStorageBackend(str(tmp_path))
        await backend.initialize()
        page = record('http://a.test/x', 1, 'http://a.test/', links=('http://a.test/y',))

        assert await backend.store_page(page)
        assert await backend.page_exists('http://a.test/x')
        assert await backend.get_page('http://a.test/x') == page
        assert await backend.get_page('http://a.test/missing') is None

        await backend.close()
        index = json.loads((tmp_path / 'index' / 'url_index.json').read_text())
        assert list(index) == ['http://a.test/x']
        assert (await backend.get_stats())['total_stored'] == 1

    async def test_initialize_failure(self, tmp_path):
        blocker = tmp_path / 'file'
        blocker.write_text('not a directory')

        with pytest.raises(StorageError):
            await FileStorageBackend(str(blocker)).initialize()


@pytest.mark.asyncio
class TestRedisStorageBackend:

    def make_client(self):
        client = AsyncMock()
        client.ping.return_value = True
        return client

    async def test_store_page_writes_hash_field(self):
        client = self.make_client()
        backend = RedisStorageBackend({'pages_key': 'test:pages'}, client=client)
        await backend.initialize()

        page = record('http://a.test/', links=('http://a.test/x',))
        assert await backend.store_page(page)

        key, field, value = client.hset.call_args.args
        assert (key, field) == ('test:pages', 'http://a.test/')
        assert json.loads(value)['links'] == ['http://a.test/x']

    async def test_get_page_decodes_bytes(self):
        client = self.make_client()
        page = record('http://a.test/', status_code=200)
        client.hget.return_value = json.dumps(page.to_dict()).encode('utf-8')
        backend = RedisStorageBackend({}, client=client)

        assert await backend.get_page('http://a.test/') == page
        client.hget.assert_awaited_with('crawlgraph:pages', 'http://a.test/')

    async def test_store_failure_is_reported_not_raised(self):
        client = self.make_client()
        client.hset.side_effect = redis.ConnectionError("down")
        backend = RedisStorageBackend({}, client=client)

        assert not await backend.store_page(record('http://a.test/'))
        assert (await backend.get_stats())['storage_errors'] == 1

    async def test_unreachable_server(self):
        client = self.make_client()
        client.ping.side_effect = redis.ConnectionError("refused")

        with pytest.raises(StorageError):
            await RedisStorageBackend({}, client=client).initialize()


class TestCreateStorageBackend:

    def test_none_configured(self):
        assert create_storage_backend(StorageConfig()) is None

    def test_file_backend(self, tmp_path):
        backend = create_storage_backend(StorageConfig(type='file', file={'data_directory': str(tmp_path)}))
        assert isinstance(backend, FileStorageBackend)

    def test_redis_backend(self):
        assert isinstance(create_storage_backend(StorageConfig(type='redis')), RedisStorageBackend)

    def test_unknown_backend(self):
        with pytest.raises(StorageError):
            create_storage_backend(StorageConfig(type='cassandra'))
