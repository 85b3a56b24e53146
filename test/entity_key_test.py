import logging
import unittest

from nodecache.constants import ROOT_QUERY
from nodecache.error import InvalidEntityKeyError
from nodecache.model.entity_key import build_store_field_name, extract_typename_and_id, make_key, parse_key, \
    parse_store_field_name, Reference
from nodecache.model.node_sort import NodeSort
from nodecache.util.ordered_index import OrderedIdIndex

logger = logging.getLogger(__name__)


class EntityKeyTest(unittest.TestCase):

    def test_make_and_parse_key(self):
        key = make_key('Folder', 'abc')
        self.assertEqual('Folder:abc', key)
        self.assertEqual(('Folder', 'abc'), parse_key(key))

    def test_id_may_contain_separator(self):
        self.assertEqual(('File', 'a:b'), parse_key('File:a:b'))

    def test_root_query_has_no_id(self):
        self.assertEqual((ROOT_QUERY, None), parse_key(ROOT_QUERY))

    def test_malformed_keys(self):
        for bad_key in ['', 'Folder', ':abc', 'Folder:']:
            with self.assertRaises(InvalidEntityKeyError):
                parse_key(bad_key)

    def test_reference_equality(self):
        ref = Reference('File:1')
        self.assertEqual(Reference('File:1'), ref)
        self.assertNotEqual(Reference('File:2'), ref)
        self.assertEqual(1, len({ref, Reference('File:1')}))
        self.assertEqual('File', ref.typename)
        self.assertEqual('1', ref.id)

    def test_extract_typename_and_id(self):
        self.assertEqual(('File', '7'), extract_typename_and_id({'__typename': 'File', 'id': 7}))
        self.assertEqual(('Folder', 'x'), extract_typename_and_id({'__ref': 'Folder:x'}))
        self.assertEqual(('Folder', 'x'), extract_typename_and_id(Reference('Folder:x')))
        self.assertEqual((None, None), extract_typename_and_id('Folder:x'))

    def test_store_field_name(self):
        self.assertEqual('children', build_store_field_name('children', {}))
        self.assertEqual('children:{"sort":"NAME_ASC"}', build_store_field_name('children', {'sort': NodeSort.NAME_ASC}))
        # arg order does not matter
        self.assertEqual(build_store_field_name('findNodes', {'flagged': True, 'keywords': ['a']}),
                         build_store_field_name('findNodes', {'keywords': ['a'], 'flagged': True}))

    def test_parse_store_field_name(self):
        store_field_name = build_store_field_name('findNodes', {'folder_id': 'TRASH_ROOT', 'cascade': False})
        self.assertEqual(('findNodes', {'folder_id': 'TRASH_ROOT', 'cascade': False}), parse_store_field_name(store_field_name))
        self.assertEqual(('shares', {}), parse_store_field_name('shares'))


class OrderedIdIndexTest(unittest.TestCase):

    @staticmethod
    def _read_id(item):
        return item.get('id', None)

    def test_keeps_insertion_order(self):
        index = OrderedIdIndex(self._read_id, [{'id': '3'}, {'id': '1'}, {'id': '2'}])
        self.assertEqual(['3', '1', '2'], [i['id'] for i in index])
        self.assertEqual(3, len(index))
        self.assertIn('1', index)
        self.assertNotIn('4', index)

    def test_put_keeps_position(self):
        index = OrderedIdIndex(self._read_id, [{'id': 'a'}, {'id': 'b'}])
        index.put('a', {'id': 'a', 'name': 'changed'})
        self.assertEqual([{'id': 'a', 'name': 'changed'}, {'id': 'b'}], index.to_list())

    def test_remove(self):
        index = OrderedIdIndex(self._read_id, [{'id': 'a'}, {'id': 'b'}, {'id': 'c'}])
        self.assertEqual({'id': 'b'}, index.remove('b'))
        self.assertIsNone(index.remove('b'))
        self.assertEqual(['a', 'c'], [i['id'] for i in index])

    def test_duplicate_keeps_first_position(self):
        index = OrderedIdIndex(self._read_id, [{'id': 'a', 'v': 1}, {'id': 'b'}, {'id': 'a', 'v': 2}])
        self.assertEqual([{'id': 'a', 'v': 2}, {'id': 'b'}], index.to_list())

    def test_items_without_id(self):
        index = OrderedIdIndex(self._read_id, [{'name': 'x'}, {'id': 'a'}, {'name': 'x'}])
        self.assertEqual(3, len(index))
        self.assertIsNone(index.get(None))
        self.assertEqual([{'name': 'x'}, {'id': 'a'}, {'name': 'x'}], index.to_list())


if __name__ == '__main__':
    unittest.main()
