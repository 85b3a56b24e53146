import logging
import unittest

from nodecache.backend.store.field_policy import BoundedSharesPolicy, build_default_type_policies, NodesListPolicy, OverwritePolicy, \
    PolicyRegistry
from nodecache.backend.store.object_store import ObjectStore
from nodecache.error import PolicyConflictError
from nodecache.model.partition import NodesPage

logger = logging.getLogger(__name__)


class PolicyRegistryTest(unittest.TestCase):

    def test_duplicate_registration_raises(self):
        registry = PolicyRegistry()
        registry.register('Folder', 'children', NodesListPolicy(['sort']))
        with self.assertRaises(PolicyConflictError):
            registry.register('Folder', 'children', NodesListPolicy(['sort']))

    def test_abstract_policies_apply_to_possible_types(self):
        table = build_default_type_policies().build_lookup_table()
        for typename in ['File', 'Folder']:
            self.assertIsInstance(table[(typename, 'shares')], BoundedSharesPolicy)
        self.assertNotIn(('File', 'children'), table)
        self.assertIsInstance(table[('Query', 'getVersions')], OverwritePolicy)

    def test_concrete_policy_wins_over_abstract(self):
        registry = PolicyRegistry({'Node': ['File', 'Folder']})
        registry.register('Node', 'name', OverwritePolicy())
        folder_policy = OverwritePolicy(key_args=[])
        registry.register('Folder', 'name', folder_policy)
        table = registry.build_lookup_table()
        self.assertIs(folder_policy, table[('Folder', 'name')])
        self.assertIsNot(folder_policy, table[('File', 'name')])

    def test_supertypes(self):
        registry = PolicyRegistry({'Node': ['File', 'Folder'], 'Item': ['File']})
        self.assertEqual(['Node', 'Item'], registry.get_supertypes('File'))
        self.assertEqual([], registry.get_supertypes('User'))

    def test_select_key_args(self):
        policy = NodesListPolicy(['flagged', 'sort'])
        self.assertEqual({'flagged': True}, policy.select_key_args({'flagged': True, 'sort': None, 'limit': 10}))
        self.assertEqual({}, policy.select_key_args(None))
        self.assertEqual({'limit': 10}, OverwritePolicy().select_key_args({'limit': 10}))

    def test_custom_registry_is_used_by_store(self):
        registry = PolicyRegistry()
        registry.register('Query', 'recent', NodesListPolicy(key_args=[], reset_on_first_page=False))
        store = ObjectStore(registry=registry, store_id='field_policy_test')

        store.write_field(None, 'recent', NodesPage([{'__typename': 'File', 'id': '1'}], 'p1'), args={'limit': 1})
        store.write_field(None, 'recent', NodesPage([{'__typename': 'File', 'id': '2'}], None), args={'limit': 1})
        page = store.read_field(None, 'recent', {'limit': 99})
        self.assertEqual(2, len(page.nodes))
        self.assertIsNone(page.page_token)


if __name__ == '__main__':
    unittest.main()
