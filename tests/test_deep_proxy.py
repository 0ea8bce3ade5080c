"""Tests for wrap(): set and delete interception on dict trees."""
from unittest.mock import call

import pytest

from deepproxy import (
    CallbackHandler,
    DeepProxyConfig,
    InvalidArgument,
    RecordingHandler,
    TrackedDict,
    TrackedList,
    invariant,
    is_tracked,
    wrap,
)


class TestSet:
    """Set trap on dicts."""

    def test_shallow_set(self, stub_proxy, set_stub):
        """Top-level write reports a one-key path."""
        stub = {'attr': 'hello'}
        proxy = stub_proxy(stub)
        proxy['attr'] = 'hello world!'

        assert proxy == {'attr': 'hello world!'}
        set_stub.assert_called_once_with(stub, stub, ['attr'], 'hello world!', proxy)

    def test_deep_set(self, stub_proxy, set_stub):
        """Nested write reports the full path and the nested raw node."""
        stub = {'attr': {'foo': 'bar'}}
        proxy = stub_proxy(stub)
        proxy['attr']['foo'] = 'barrio'

        assert proxy == {'attr': {'foo': 'barrio'}}
        set_stub.assert_called_once_with(
            stub, proxy['attr'].raw, ['attr', 'foo'], 'barrio', proxy['attr']
        )

    def test_deep_set_with_container_value(self, stub_proxy, set_stub):
        """A container value is wrapped before the handler sees it."""
        stub = {'attr': {'foo': 'bar'}}
        proxy = stub_proxy(stub)
        proxy['attr']['foo'] = {'bar': 'barrio'}

        assert proxy == {'attr': {'foo': {'bar': 'barrio'}}}
        set_stub.assert_called_once_with(
            stub, proxy['attr'].raw, ['attr', 'foo'], {'bar': 'barrio'}, proxy['attr']
        )
        observed = set_stub.call_args.args[3]
        assert isinstance(observed, TrackedDict)
        assert observed is proxy['attr']['foo']

    def test_new_container_value_is_tracked(self, stub_proxy, set_stub):
        """Writes inside a newly assigned container are observed too."""
        stub = {'attr': {}}
        proxy = stub_proxy(stub)
        proxy['attr']['child'] = {'leaf': 1}
        set_stub.reset_mock()

        proxy['attr']['child']['leaf'] = 2

        set_stub.assert_called_once()
        assert set_stub.call_args.args[2] == ['attr', 'child', 'leaf']

    def test_set_within_list_through_raw_root(self, stub_proxy, set_stub):
        """Nested containers of the original root are replaced in place by wrappers."""
        stub = {'attr': ['a', 'b', 'c']}
        proxy = stub_proxy(stub)
        stub['attr'][1] = 'to'

        assert proxy == {'attr': ['a', 'to', 'c']}
        set_stub.assert_called_once_with(
            stub, proxy['attr'].raw, ['attr', 1], 'to', proxy['attr']
        )

    def test_set_within_dict_within_list(self, stub_proxy, set_stub):
        stub = {'attr': {'baz': [{'nested': True}]}}
        proxy = stub_proxy(stub)
        proxy['attr']['baz'][0]['nested'] = False

        assert proxy == {'attr': {'baz': [{'nested': False}]}}
        set_stub.assert_called_once_with(
            stub,
            proxy['attr']['baz'][0].raw,
            ['attr', 'baz', 0, 'nested'],
            False,
            proxy['attr']['baz'][0],
        )

    def test_list_append(self, stub_proxy, set_stub):
        """Append writes the new index first and the length last."""
        stub = {'attr': ['a', 'b', 'c']}
        proxy = stub_proxy(stub)
        stub['attr'].append('d')

        assert proxy == {'attr': ['a', 'b', 'c', 'd']}
        tracked = proxy['attr']
        assert set_stub.call_args_list == [
            call(stub, tracked.raw, ['attr', 3], 'd', tracked),
            call(stub, tracked.raw, ['attr', 'length'], 4, tracked),
        ]

    def test_set_method_reports_outcome(self):
        proxy = wrap({'a': 1}, {'set': lambda root, node, path, value, receiver: value != 'no'})
        assert proxy.set('a', 2) is True
        assert proxy.set('a', 'no') is False
        assert proxy['a'] == 2

    def test_update_and_setdefault(self, recorder):
        proxy = wrap({}, recorder)
        proxy.update({'a': 1, 'b': 2})
        assert proxy.setdefault('c', []) == []
        assert proxy.setdefault('a', 99) == 1

        assert recorder.paths() == [('a',), ('b',), ('c',)]
        assert isinstance(proxy['c'], TrackedList)


class TestRejection:
    """Handler returning a falsy value vetoes the write."""

    def test_rejected_write_leaves_value(self):
        stub = {'attr': 'hello'}
        calls = []

        def reject(root, node, path, value, receiver):
            calls.append(path)
            return False

        proxy = wrap(stub, {'set': reject})
        proxy['attr'] = 'changed'

        assert stub['attr'] == 'hello'
        assert proxy['attr'] == 'hello'
        assert calls == [['attr']]

    def test_rejected_new_key_is_not_created(self):
        proxy = wrap({}, {'set': lambda *args: False})
        proxy['missing'] = 1
        assert 'missing' not in proxy

    def test_rejected_container_value_is_restored(self):
        """The caller's rejected value keeps plain containers."""
        value = {'inner': {'x': 1}, 'items': [{'y': 2}]}
        proxy = wrap({}, {'set': lambda *args: False})
        proxy['new'] = value

        assert 'new' not in proxy
        assert type(value['inner']) is dict
        assert type(value['items']) is list
        assert type(value['items'][0]) is dict

    def test_rejected_container_value_kept_wrapped_when_configured(self):
        value = {'inner': {'x': 1}}
        config = DeepProxyConfig(restore_rejected=False)
        proxy = wrap({}, {'set': lambda *args: False}, config=config)
        proxy['new'] = value

        assert 'new' not in proxy
        assert isinstance(value['inner'], TrackedDict)

    def test_rejected_value_holding_live_wrapper(self):
        """A live subtree inside a rejected value stays tracked where it was."""
        recorder = RecordingHandler(accept=lambda path, value: path != ['b'])
        proxy = wrap({'a': {'x': {}}}, recorder)
        live = proxy['a']['x']
        value = {'y': live}

        proxy['b'] = value

        assert 'b' not in proxy
        assert not live.detached
        assert live.path == ['a', 'x']
        assert value['y'] is live.raw
        recorder.clear()

        proxy['a']['x']['k'] = 2
        assert recorder.paths() == [('a', 'x', 'k')]

    def test_rejected_value_holding_live_raw_node(self):
        recorder = RecordingHandler(accept=lambda path, value: path != ['b'])
        proxy = wrap({'a': {'x': {}}}, recorder)
        live = proxy['a']['x']
        value = {'y': live.raw, 'fresh': {'z': 1}}

        proxy['b'] = value

        assert not live.detached
        assert value['y'] is live.raw
        assert type(value['fresh']) is dict
        recorder.clear()

        proxy['a']['x']['k'] = 2
        assert recorder.paths() == [('a', 'x', 'k')]

    def test_rejected_value_with_live_wrapper_kept_wrapped_when_configured(self):
        config = DeepProxyConfig(restore_rejected=False)
        proxy = wrap({'a': {'x': {}}}, {'set': lambda root, node, path, value, receiver: path != ['b']}, config=config)
        live = proxy['a']['x']

        proxy['b'] = {'y': live}

        assert not live.detached
        assert live.path == ['a', 'x']

    def test_handler_without_return_rejects(self):
        """None is falsy, so a set operation that forgets to return rejects."""
        proxy = wrap({'a': 1}, {'set': lambda *args: None})
        proxy['a'] = 2
        assert proxy['a'] == 1

    def test_handler_exception_propagates_before_commit(self):
        value = {'inner': {}}

        def boom(*args):
            raise RuntimeError("handler failed")

        proxy = wrap({'a': 1}, {'set': boom})
        with pytest.raises(RuntimeError, match="handler failed"):
            proxy['a'] = value

        assert proxy['a'] == 1
        assert type(value['inner']) is dict


class TestDelete:
    """Delete trap on dicts."""

    def test_delete_shallow_property(self, stub_proxy, delete_stub):
        stub = {'attr1': 'hello'}
        proxy = stub_proxy(stub)
        del proxy['attr1']

        assert proxy == {}
        delete_stub.assert_called_once_with(stub, stub, ['attr1'])

    def test_delete_child_property(self, stub_proxy, delete_stub):
        stub = {'attr2': {'foo': 'bar'}}
        proxy = stub_proxy(stub)
        invariant(proxy['attr2'])
        del proxy['attr2']['foo']

        assert proxy == {'attr2': {}}
        delete_stub.assert_called_once_with(stub, proxy['attr2'].raw, ['attr2', 'foo'])

    def test_delete_parent_of_children(self, stub_proxy, set_stub, delete_stub):
        """Deleting a container stops observation of the whole subtree."""
        original = {'foo': 'bar'}
        stub = {'attr2': original}
        proxy = stub_proxy(stub)
        child = proxy['attr2']

        del proxy['attr2']

        assert proxy == {}
        delete_stub.assert_called_once_with(stub, stub, ['attr2'])
        assert child.detached
        assert not is_tracked(child)

        original['foo'] = 'direct'
        child['foo'] = 'through stale wrapper'
        del child['foo']
        set_stub.assert_not_called()
        assert delete_stub.call_count == 1
        assert original == {}

    def test_delete_parent_of_grandchildren(self, stub_proxy, set_stub, delete_stub):
        stub = {'attr3': {'foo': {'bar': 'baz'}}}
        proxy = stub_proxy(stub)
        child = proxy['attr3']
        grandchild = proxy['attr3']['foo']
        raw_child = child.raw

        del proxy['attr3']

        assert proxy == {}
        delete_stub.assert_called_once_with(stub, stub, ['attr3'])
        assert child.detached and grandchild.detached
        assert type(raw_child['foo']) is dict
        assert raw_child['foo'] is grandchild.raw

        raw_child['foo']['bar'] = 'qux'
        grandchild['bar'] = 'quux'
        set_stub.assert_not_called()

    def test_delete_nonexistent_property(self, stub_proxy, delete_stub):
        stub = {'attr1': 'hello'}
        proxy = stub_proxy(stub)

        assert proxy.delete('attr2') is False
        with pytest.raises(KeyError):
            del proxy['attr2']

        assert proxy == {'attr1': 'hello'}
        delete_stub.assert_not_called()

    def test_delete_result_is_ignored(self):
        """delete_property cannot veto: the key is already gone."""
        proxy = wrap({'a': 1}, {'delete_property': lambda *args: False})
        assert proxy.delete('a') is True
        assert 'a' not in proxy

    def test_delete_handler_exception_after_removal(self):
        def boom(*args):
            raise RuntimeError("notify failed")

        proxy = wrap({'a': 1}, {'delete_property': boom})
        with pytest.raises(RuntimeError):
            del proxy['a']
        assert 'a' not in proxy

    def test_pop_returns_raw_value(self, recorder):
        proxy = wrap({'a': {'b': [1]}}, recorder)
        value = proxy.pop('a')

        assert type(value) is dict
        assert type(value['b']) is list
        assert recorder.paths('delete') == [('a',)]
        assert proxy.pop('missing', 'default') == 'default'
        with pytest.raises(KeyError):
            proxy.pop('missing')

    def test_popitem_and_clear(self, recorder):
        proxy = wrap({'a': 1, 'b': {'c': 2}}, recorder)
        key, value = proxy.popitem()
        assert (key, value) == ('b', {'c': 2})
        assert type(value) is dict

        proxy.clear()
        assert proxy == {}
        assert recorder.paths('delete') == [('b',), ('a',)]
        with pytest.raises(KeyError):
            proxy.popitem()


class TestOverwrite:
    """Overwriting a container detaches the old subtree."""

    def test_overwrite_detaches_old_container(self, stub_proxy, set_stub):
        stub = {'a': {'x': {'y': 1}}}
        proxy = stub_proxy(stub)
        old = proxy['a']
        nested = proxy['a']['x']

        proxy['a'] = 5
        set_stub.reset_mock()

        assert old.detached and nested.detached
        assert type(old.raw['x']) is dict
        old['x'] = 'ignored'
        nested['y'] = 2
        set_stub.assert_not_called()

    def test_reassigning_same_wrapper_keeps_it(self, recorder):
        proxy = wrap({'a': {'x': 1}}, recorder)
        child = proxy['a']
        proxy['a'] = child

        assert not child.detached
        child['x'] = 2
        assert recorder.paths() == [('a',), ('a', 'x')]

    def test_raw_node_of_tracked_wrapper_is_not_wrapped_twice(self, recorder):
        shared = {'x': 1}
        proxy = wrap({}, recorder)
        proxy['a'] = shared
        proxy['b'] = shared

        assert proxy['a'] is proxy['b']

    def test_moved_wrapper_survives_removal_of_old_key(self, recorder):
        """A wrapper assigned to a new key lives there; clearing the old key keeps it."""
        proxy = wrap({'a': {'x': 1}}, recorder)
        child = proxy['a']
        proxy['b'] = child
        del proxy['a']

        assert not child.detached
        assert child.path == ['b']
        child['x'] = 2
        assert recorder.paths() == [('b',), ('a',), ('b', 'x')]

    def test_shared_wrapper_survives_removal_of_new_key(self, recorder):
        """A wrapper held under two keys stays tracked until both are gone."""
        proxy = wrap({'a': {'x': 1}}, recorder)
        child = proxy['a']
        proxy['b'] = child
        del proxy['b']

        assert not child.detached
        assert proxy['a'] is child
        assert child.path == ['a']
        recorder.clear()

        proxy['a']['x'] = 2
        assert recorder.paths() == [('a', 'x')]

        del proxy['a']
        assert child.detached
        assert 'a' not in proxy

    def test_overwriting_one_of_two_keys_keeps_shared_wrapper(self, recorder):
        proxy = wrap({'a': {'x': 1}}, recorder)
        child = proxy['a']
        proxy['b'] = child
        proxy['a'] = 'scalar'

        assert not child.detached
        assert child.path == ['b']

    def test_detached_wrapper_can_be_reassigned(self, recorder):
        proxy = wrap({'a': {'x': 1}}, recorder)
        child = proxy['a']
        del proxy['a']

        proxy['b'] = child
        assert proxy['b'] is not child
        assert proxy['b'].raw is child.raw
        proxy['b']['x'] = 2
        assert recorder.paths()[-1] == ('b', 'x')


class TestReadAccess:
    """Reads are plain passthroughs."""

    def test_mapping_reads(self):
        stub = {'a': 1, 'b': {'c': [1, 2]}}
        proxy = wrap(stub)

        assert len(proxy) == 2
        assert list(proxy) == ['a', 'b']
        assert 'a' in proxy and 'z' not in proxy
        assert proxy.get('z') is None
        assert proxy['b']['c'][1] == 2
        assert dict(proxy.items())['a'] == 1
        assert repr(proxy) == repr({'a': 1, 'b': {'c': [1, 2]}})

    def test_equality_against_plain_containers(self):
        proxy = wrap({'a': [1, {'b': 2}]})
        assert proxy == {'a': [1, {'b': 2}]}
        assert {'a': [1, {'b': 2}]} == proxy
        assert proxy['a'] == [1, {'b': 2}]
        assert proxy != {'a': []}

    def test_scalars_and_tuples_are_leaves(self):
        proxy = wrap({'t': (1, [2]), 's': 'text', 'n': None})
        assert type(proxy['t']) is tuple
        assert type(proxy['t'][1]) is list

    def test_list_operators(self):
        proxy = wrap({'l': [1, 2]})
        items = proxy['l']

        assert items + [3] == [1, 2, 3]
        assert [0] + items == [0, 1, 2]
        assert items + items == [1, 2, 1, 2]
        assert items * 2 == [1, 2, 1, 2]
        assert 2 * items == [1, 2, 1, 2]
        assert items < [2] and items <= [1, 2]
        assert items > [0] and items >= [1, 2]
        assert type(items + [3]) is list

    def test_copies_are_plain(self):
        proxy = wrap({'l': [1, {'n': 1}], 'd': {'a': 1}})

        copied = proxy['l'].copy()
        assert type(copied) is list and copied == [1, {'n': 1}]
        assert copied[1] is proxy['l'][1]
        copied.append(3)
        assert proxy['l'] == [1, {'n': 1}]

        assert type(proxy['d'].copy()) is dict
        assert proxy['d'].copy() == {'a': 1}

    def test_dict_union(self, recorder):
        proxy = wrap({'d': {'a': 1}}, recorder)

        assert proxy['d'] | {'b': 2} == {'a': 1, 'b': 2}
        assert {'b': 2} | proxy['d'] == {'b': 2, 'a': 1}
        assert type(proxy['d'] | {}) is dict
        assert recorder.events == []

        proxy['d'] |= {'c': 3}
        assert proxy['d'] == {'a': 1, 'c': 3}
        # augmented assignment writes the same wrapper back under 'd'
        assert recorder.paths() == [('d', 'c'), ('d',)]

    def test_wrappers_are_unhashable(self):
        with pytest.raises(TypeError):
            hash(wrap({}))

    def test_no_handler_accepts_everything(self):
        proxy = wrap({'a': 1})
        proxy['a'] = 2
        del proxy['a']
        assert proxy == {}


class TestWrapArguments:

    @pytest.mark.parametrize('root', [None, 5, 'text', (1, 2)])
    def test_non_container_root(self, root):
        with pytest.raises(InvalidArgument):
            wrap(root)

    def test_invalid_argument_is_type_error(self):
        with pytest.raises(TypeError):
            wrap(None)

    def test_list_root(self, recorder):
        proxy = wrap([1, 2], recorder)
        proxy.append(3)
        assert recorder.paths() == [(2,), ('length',)]

    def test_root_already_tracked(self):
        proxy = wrap({})
        with pytest.raises(InvalidArgument):
            wrap(proxy)

    def test_wrapper_from_other_live_tree(self):
        other = wrap({'x': {}})
        proxy = wrap({})
        with pytest.raises(InvalidArgument):
            proxy['y'] = other['x']

    def test_non_callable_operation(self):
        with pytest.raises(InvalidArgument):
            wrap({}, {'set': 5})

    def test_handler_object_and_mapping(self):
        seen = []
        handler = CallbackHandler(set=lambda root, node, path, value, receiver: seen.append(path) or True)
        wrap({'a': 1}, handler)['a'] = 2
        wrap({'a': 1}, {'set': handler.set})['a'] = 3
        assert seen == [['a'], ['a']]

    def test_handler_receives_fresh_path_lists(self):
        paths = []

        def on_set(root, node, path, value, receiver):
            paths.append(path)
            path.append('mutated by handler')
            return True

        proxy = wrap({'a': {'b': 1}}, {'set': on_set})
        proxy['a']['b'] = 2
        proxy['a']['b'] = 3
        assert paths[0] is not paths[1]
        assert proxy['a'].path == ['a']
