import logging
import unittest

from nodecache.backend.store.cache_updaters import add_node_in_cached_children, evict_children, FolderContentUpdater, \
    get_visible_children, recursive_share_evict, remove_nodes_from_filter, remove_nodes_from_folder, update_cache_after_copy, \
    update_cache_after_move, update_cache_after_restore
from nodecache.backend.store.cache_watcher import CacheWatcher
from nodecache.backend.store.object_store import ObjectStore
from nodecache.constants import NodeType, ROOT_QUERY, RootId
from nodecache.model.cache_context import CacheContext
from nodecache.model.entity_key import Reference
from nodecache.model.node_sort import NodeSort
from nodecache.model.partition import NodesPage

logger = logging.getLogger(__name__)

STORE_ID = 'cache_updaters_test'


def _file(node_id, name=None):
    return {'__typename': 'File', 'id': node_id, 'name': name or node_id, 'type': NodeType.TEXT, 'size': 1}


def _folder(node_id, name=None):
    return {'__typename': 'Folder', 'id': node_id, 'name': name or node_id, 'type': NodeType.FOLDER}


def _refs(*keys):
    return [Reference(k) for k in keys]


class CacheUpdatersTest(unittest.TestCase):
    """
    ▼▼▼▼▼▼▼▼▼▼▼▼▼▼▼▼▼▼▼▼▼▼▼▼▼▼▼▼▼▼▼▼▼▼▼▼▼▼▼▼▼▼▼▼▼▼▼▼▼▼▼▼▼▼▼▼▼▼▼▼▼▼▼▼▼▼▼▼▼▼▼▼▼▼▼▼▼▼▼▼▼▼▼▼▼▼▼▼▼▼▼▼▼▼▼▼▼▼▼▼▼▼▼▼▼▼▼▼▼▼▼▼▼▼▼▼▼▼▼▼▼▼▼▼▼▼▼▼▼▼▼▼▼▼▼▼▼▼▼▼▼▼▼▼▼
    CLASS CacheUpdatersTest

    Folders are kept reachable by caching a getNode lookup for each of them, the way an open view would.
    ▼ ▼ ▼ ▼ ▼ ▼ ▼ ▼ ▼ ▼ ▼ ▼ ▼ ▼ ▼ ▼ ▼ ▼ ▼ ▼ ▼ ▼ ▼ ▼ ▼ ▼ ▼ ▼ ▼ ▼ ▼ ▼ ▼ ▼ ▼ ▼ ▼ ▼ ▼ ▼ ▼ ▼ ▼ ▼ ▼ ▼ ▼ ▼ ▼ ▼ ▼ ▼ ▼ ▼ ▼ ▼ ▼ ▼ ▼ ▼ ▼ ▼ ▼ ▼ ▼ ▼ ▼ ▼ ▼ ▼ ▼ ▼ ▼
    """

    def setUp(self) -> None:
        self.context = CacheContext(node_sort=NodeSort.NAME_ASC)
        self.store = ObjectStore(context=self.context, store_id=STORE_ID)
        self.watcher = CacheWatcher(STORE_ID)
        self.watcher.start()

    def tearDown(self) -> None:
        self.watcher.shutdown()
        self.store.shutdown()

    def _open_folder(self, folder_id, nodes, page_token=None, sort=NodeSort.NAME_ASC):
        self.store.write_field(None, 'getNode', _folder(folder_id), args={'node_id': folder_id})
        self.store.write_field(f'Folder:{folder_id}', 'children', NodesPage(nodes, page_token), args={'sort': sort})

    def _children(self, folder_id, sort=NodeSort.NAME_ASC):
        store_field_name = self.store.get_store_field_name(f'Folder:{folder_id}', 'children', {'sort': sort})
        return self.store.read_field_value(f'Folder:{folder_id}', store_field_name)

    # Insert
    # ▼ ▼ ▼ ▼ ▼ ▼ ▼ ▼ ▼ ▼ ▼ ▼ ▼ ▼ ▼ ▼ ▼ ▼ ▼ ▼ ▼ ▼ ▼ ▼ ▼ ▼ ▼ ▼ ▼

    def test_add_node_in_cached_children(self):
        self._open_folder('f', [_file('A'), _file('B'), _file('C')])
        insert_result = add_node_in_cached_children(self.store, _file('D'), 'f', 1, self.context)

        self.assertEqual(_refs('File:A', 'File:D', 'File:B', 'File:C'), get_visible_children(self.store, 'f', self.context))
        self.assertEqual(1, insert_result.final_index)
        self.assertFalse(insert_result.is_last)
        self.assertEqual(Reference('Folder:f'), self.store.read_field_value('File:D', 'parent'))

    def test_add_node_drops_list_cached_for_other_sort(self):
        self._open_folder('f', [_file('A'), _file('B')], sort=NodeSort.NAME_ASC)
        self._open_folder('f', [_file('B'), _file('A')], sort=NodeSort.NAME_DESC)

        add_node_in_cached_children(self.store, _file('C'), 'f', 2, self.context)
        self.assertIsNone(self._children('f', NodeSort.NAME_DESC))
        self.assertEqual(_refs('File:A', 'File:B', 'File:C'), get_visible_children(self.store, 'f', self.context))

    def test_sort_change_drops_previous_list(self):
        self._open_folder('f', [_file('A'), _file('B')], sort=NodeSort.NAME_ASC)
        desc_context = self.context.with_sort(NodeSort.NAME_DESC)

        self.assertIsNone(add_node_in_cached_children(self.store, _file('C'), 'f', 0, desc_context))
        self.assertEqual([], self.store.get_store_field_names('Folder:f', 'children'))

    def test_add_node_without_cached_children(self):
        self.assertIsNone(add_node_in_cached_children(self.store, _file('X'), 'nope', 0, self.context))
        self.assertNotIn('File:X', self.store)
        self.assertEqual([], self.watcher.update_list)

    def test_add_node_to_folder_finds_sorted_position(self):
        self._open_folder('f', [_folder('b'), _file('a'), _file('c')])
        updater = FolderContentUpdater(self.store, self.context)

        insert_result = updater.add_node_to_folder('f', _file('nb', name='b'))
        self.assertEqual((2, False), (insert_result.final_index, insert_result.is_last))
        self.assertEqual(_refs('Folder:b', 'File:a', 'File:nb', 'File:c'), self._children('f').nodes.ordered)

        insert_result = updater.add_node_to_folder('f', _file('z'))
        self.assertEqual((4, True), (insert_result.final_index, insert_result.is_last))
        self.assertEqual(_refs('File:z'), self._children('f').nodes.unordered)

    def test_add_node_to_folder_not_cached(self):
        updater = FolderContentUpdater(self.store, self.context)
        insert_result = updater.add_node_to_folder('nope', _file('a'))
        self.assertEqual((0, True), (insert_result.final_index, insert_result.is_last))

    def test_add_node_to_empty_folder(self):
        self._open_folder('f', [])
        insert_result = FolderContentUpdater(self.store, self.context).add_node_to_folder('f', _file('a'))
        self.assertEqual((0, True), (insert_result.final_index, insert_result.is_last))
        self.assertEqual(_refs('File:a'), get_visible_children(self.store, 'f', self.context))

    def test_insert_result_is_for_current_sort(self):
        self.store.write_field(None, 'getNode', _folder('f'), args={'node_id': 'f'})
        # cached without a sort first, so that it is visited first
        self.store.write_field('Folder:f', 'children', NodesPage([_file('A'), _file('B'), _file('C'), _file('D')], None))
        self.store.write_field('Folder:f', 'children', NodesPage([_file('A')], None), args={'sort': NodeSort.NAME_ASC})

        insert_result = add_node_in_cached_children(self.store, _file('E'), 'f', 2, self.context)
        self.assertEqual((1, True), (insert_result.final_index, insert_result.is_last))
        self.assertEqual(_refs('File:A', 'File:E'), get_visible_children(self.store, 'f', self.context))

    # Remove
    # ▼ ▼ ▼ ▼ ▼ ▼ ▼ ▼ ▼ ▼ ▼ ▼ ▼ ▼ ▼ ▼ ▼ ▼ ▼ ▼ ▼ ▼ ▼ ▼ ▼ ▼ ▼ ▼ ▼

    def test_remove_nodes_from_folder(self):
        self._open_folder('f', [_file('A'), _file('B'), _file('C')])
        self.assertTrue(remove_nodes_from_folder(self.store, 'f', ['A', 'C']))
        self.assertEqual(_refs('File:B'), get_visible_children(self.store, 'f', self.context))

    def test_removing_everything_from_partial_list_evicts_it(self):
        self._open_folder('f', [_file('A')], page_token='next')
        remove_nodes_from_folder(self.store, 'f', 'A')
        self.assertIsNone(self._children('f'))

    def test_removing_everything_from_complete_list_keeps_it(self):
        self._open_folder('f', [_file('A')])
        remove_nodes_from_folder(self.store, 'f', ['A'])
        cached = self._children('f')
        self.assertIsNotNone(cached)
        self.assertTrue(cached.nodes.is_empty())

    def test_remove_drops_evicted_nodes(self):
        self._open_folder('f', [_file('A'), _file('B')])
        self.store.evict('File:B')
        remove_nodes_from_folder(self.store, 'f', [])
        self.assertEqual(_refs('File:A'), get_visible_children(self.store, 'f', self.context))

    def test_remove_nodes_from_filter_only_touches_matching_lists(self):
        self.store.write_field(None, 'findNodes', NodesPage([_file('A'), _file('B')], None), args={'flagged': True})
        self.store.write_field(None, 'findNodes', NodesPage([_file('A')], None), args={'folder_id': RootId.TRASH.value})

        remove_nodes_from_filter(self.store, ['A'], lambda cached: cached.args.get('folder_id', None) == RootId.TRASH.value)

        flagged = self.store.read_field(None, 'findNodes', {'flagged': True})
        trash = self.store.read_field(None, 'findNodes', {'folder_id': RootId.TRASH.value})
        self.assertEqual(_refs('File:A', 'File:B'), flagged.nodes)
        self.assertEqual([], trash.nodes)

    def test_removing_everything_from_partial_filter_evicts_it(self):
        trash_args = {'folder_id': RootId.TRASH.value}
        self.store.write_field(None, 'findNodes', NodesPage([_file('A')], 'more'), args={'flagged': True})
        self.store.write_field(None, 'findNodes', NodesPage([_file('A')], 'more'), args=trash_args)
        old_ticket = self.store.begin_fetch(None, 'findNodes', trash_args)
        self.store.begin_fetch(None, 'findNodes', trash_args)

        remove_nodes_from_filter(self.store, ['A'], lambda cached: cached.args.get('folder_id', None) == RootId.TRASH.value)

        self.assertIsNone(self.store.read_field(None, 'findNodes', trash_args))
        self.assertEqual(_refs('File:A'), self.store.read_field(None, 'findNodes', {'flagged': True}).nodes)
        # the removed list starts over, so a page requested before the removal is accepted
        self.assertTrue(self.store.write_field(None, 'findNodes', NodesPage([_file('B')], None), args=trash_args, ticket=old_ticket))

    def test_remove_accepts_any_iterable_of_ids(self):
        self._open_folder('f', [_file('A'), _file('B'), _file('C'), _file('D')])
        remove_nodes_from_folder(self.store, 'f', (node_id for node_id in ['A']))
        remove_nodes_from_folder(self.store, 'f', frozenset(['B']))
        remove_nodes_from_folder(self.store, 'f', {'C': 1}.keys())
        self.assertEqual(_refs('File:D'), get_visible_children(self.store, 'f', self.context))

    def test_evict_children_accepts_generator(self):
        self._open_folder('f', [_file('A')])
        evict_children(self.store, (folder_id for folder_id in ['f']), self.context)
        self.assertIsNone(self._children('f'))

    # Evict
    # ▼ ▼ ▼ ▼ ▼ ▼ ▼ ▼ ▼ ▼ ▼ ▼ ▼ ▼ ▼ ▼ ▼ ▼ ▼ ▼ ▼ ▼ ▼ ▼ ▼ ▼ ▼ ▼ ▼

    def test_evict_children_skips_current_folder(self):
        self._open_folder('cur', [_file('y')])
        self._open_folder('other', [_file('x')])
        context = self.context.with_current_folder('cur')

        removed_keys = evict_children(self.store, ['cur', 'other'], context)
        self.assertEqual(['File:x'], removed_keys)
        self.assertIsNotNone(self._children('cur'))
        self.assertIsNone(self._children('other'))
        self.assertIn('File:y', self.store)
        self.assertIn(('Folder:other', 'children'), self.watcher.eviction_list)

    def test_recursive_share_evict(self):
        self._open_folder('r', [_folder('s'), _file('a')])
        self.store.write_field('Folder:s', 'children', NodesPage([_file('b')], None), args={'sort': NodeSort.NAME_ASC})
        for key in ['Folder:r', 'Folder:s', 'File:a', 'File:b']:
            self.store.write_field(key, 'shares', [{'permission': 'READ'}], args={'limit': 5})

        visited_count = recursive_share_evict(self.store, Reference('Folder:r'))
        self.assertEqual(4, visited_count)
        self.assertIsNone(self.store.read_field('Folder:r', 'shares', {'limit': 5}))
        self.assertIsNone(self._children('r'))
        # descendants are no longer reachable
        for key in ['Folder:s', 'File:a', 'File:b']:
            self.assertNotIn(key, self.store)
        self.assertIn('Folder:r', self.store)

    def test_recursive_share_evict_unknown_node(self):
        self.assertEqual(0, recursive_share_evict(self.store, {'__typename': 'Folder', 'id': 'nope'}))

    def test_update_after_move(self):
        self._open_folder('src', [_file('a'), _file('b')])
        self._open_folder('dst', [_file('c')])
        self.store.write_field(None, 'getPath', [_folder('src'), _file('a')], args={'node_id': 'a'})

        update_cache_after_move(self.store, [('a', 'src')], 'dst', self.context)
        self.assertEqual(_refs('File:b'), get_visible_children(self.store, 'src', self.context))
        self.assertIsNone(self._children('dst'))
        self.assertEqual([], self.store.get_store_field_names(ROOT_QUERY, 'getPath'))

    def test_update_after_copy(self):
        self._open_folder('dst', [_file('c')])

        # copy into the open folder: its list stays, the caller inserts the copies
        update_cache_after_copy(self.store, 'dst', self.context.with_current_folder('dst'))
        self.assertEqual(_refs('File:c'), get_visible_children(self.store, 'dst', self.context))

        update_cache_after_copy(self.store, 'dst', self.context)
        self.assertIsNone(self._children('dst'))
        self.assertIn('Folder:dst', self.store)

    def test_update_after_restore(self):
        self._open_folder('dst', [_file('c')])
        self.store.write_field(None, 'findNodes', NodesPage([_file('a'), _file('t')], 'more'), args={'folder_id': RootId.TRASH.value})

        update_cache_after_restore(self.store, [('a', 'dst')], lambda cached: cached.args.get('folder_id') == RootId.TRASH.value,
                                   self.context)
        trash = self.store.read_field(None, 'findNodes', {'folder_id': RootId.TRASH.value})
        self.assertEqual(_refs('File:t'), trash.nodes)
        self.assertIsNone(self._children('dst'))


if __name__ == '__main__':
    unittest.main()
