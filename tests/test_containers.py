"""Tests for dense, sparse and parameter containers."""

import numpy as np
import pandas as pd
import pytest
import xarray as xr

from infraopt.containers import DenseValueContainer, ParameterContainer, SparseValueContainer
from infraopt.core import UNSET, DataShapeError, DuplicateAxisLabelError, KeyNotFoundError


class TestDenseValueContainer:
    """Every combination of labels exists from creation."""

    @pytest.fixture
    def dense(self):
        return DenseValueContainer(['gen1', 'gen2'], [1, 2, 3])

    def test_shape_and_dims(self, dense):
        assert dense.shape == (2, 3)
        assert dense.size == 6
        assert len(dense) == 6
        assert dense.dims == ('name', 'time_step')

    def test_cells_start_unset(self, dense):
        assert all(value is UNSET for value in dense.values())
        assert not UNSET
        assert not dense.is_populated(('gen1', 1))

    def test_set_and_get(self, dense):
        dense['gen2', 3] = 4.5
        assert dense['gen2', 3] == 4.5
        assert dense.is_populated(('gen2', 3))
        assert dense.get(('gen1', 1), 'default') == 'default'

    def test_keys_in_axis_order(self, dense):
        assert list(dense.keys())[:3] == [('gen1', 1), ('gen1', 2), ('gen1', 3)]

    def test_missing_label(self, dense):
        with pytest.raises(KeyNotFoundError):
            dense['gen3', 1]
        with pytest.raises(KeyNotFoundError):
            dense['gen1', 1, 'extra']
        assert not dense.has_key(('gen3', 1))
        assert ('gen1', 2) in dense

    def test_unhashable_label(self, dense):
        with pytest.raises(KeyNotFoundError):
            dense['gen1', [1, 2]]
        assert not dense.has_key(('gen1', [1, 2]))
        assert dense.get(('gen1', [1, 2])) is None

    def test_no_resizing(self, dense):
        with pytest.raises(KeyNotFoundError):
            dense['gen3', 1] = 1.0
        assert dense.shape == (2, 3)

    def test_duplicate_axis_label(self):
        with pytest.raises(DuplicateAxisLabelError, match='gen1'):
            DenseValueContainer(['gen1', 'gen1'], [1, 2])

    def test_duplicate_axis_label_is_data_shape_error(self):
        with pytest.raises(DataShapeError):
            DenseValueContainer(['a'], [1, 1])

    def test_dims(self):
        assert DenseValueContainer(['a']).dims == ('name',)
        assert DenseValueContainer(['a'], [1], [1]).dims == ('name', 'index', 'time_step')
        assert DenseValueContainer(['a'], [1], dims=('bus', 'hour')).dims == ('bus', 'hour')
        with pytest.raises(DataShapeError):
            DenseValueContainer(['a'], [1], dims=('bus',))
        with pytest.raises(DataShapeError):
            DenseValueContainer()

    def test_to_dataarray(self, dense):
        dense['gen1', 1] = 1.0
        dense['gen2', 2] = 2.0
        data = dense.to_dataarray(name='power')
        assert isinstance(data, xr.DataArray)
        assert data.name == 'power'
        assert data.dims == ('name', 'time_step')
        assert data.sel(name='gen2', time_step=2).item() == 2.0
        assert np.isnan(data.sel(name='gen1', time_step=3).item())

    def test_to_dataarray_with_converter(self, dense):
        for key in dense.keys():
            dense[key] = {'value': 3}
        data = dense.to_dataarray(value=lambda cell: cell['value'])
        assert (data == 3.0).all()


class TestSparseValueContainer:
    """Only the tuples that were set exist."""

    def test_set_and_get(self):
        sparse = SparseValueContainer(dims=('name', 'index', 'time_step'))
        sparse['gen1', 1, 1] = 'a'
        sparse['gen1', 2, 1] = 'b'
        assert sparse['gen1', 2, 1] == 'b'
        assert len(sparse) == 2
        assert sparse.has_key(('gen1', 1, 1))
        assert list(sparse.keys()) == [('gen1', 1, 1), ('gen1', 2, 1)]

    def test_missing_key_fails(self):
        sparse = SparseValueContainer()
        with pytest.raises(KeyNotFoundError):
            sparse['gen1', 1, 1]
        assert sparse.get(('gen1', 1, 1)) is None

    def test_key_length_checked(self):
        sparse = SparseValueContainer(dims=('name', 'time_step'))
        with pytest.raises(DataShapeError):
            sparse['gen1', 1, 1] = 1.0

    def test_initial_data(self):
        sparse = SparseValueContainer(dims=('name',), data={'gen1': 1.0})
        assert sparse['gen1'] == 1.0

    def test_to_series(self):
        sparse = SparseValueContainer(dims=('name', 'time_step'))
        sparse['gen1', 1] = 1.5
        sparse['gen2', 1] = 2.5
        series = sparse.to_series(name='delta')
        assert isinstance(series, pd.Series)
        assert series.index.names == ['name', 'time_step']
        assert series['gen2', 1] == 2.5

    def test_empty_to_series(self):
        assert len(SparseValueContainer(dims=('name',)).to_series()) == 0


class TestParameterContainer:
    def test_effective_value(self):
        parameters = DenseValueContainer(['gen1'], [1, 2])
        multipliers = DenseValueContainer(['gen1'], [1, 2])
        for key in parameters.keys():
            parameters[key] = 10.0
            multipliers[key] = 0.5
        container = ParameterContainer(parameters, multipliers, {'source': 'fuel_price'})
        assert container.value(('gen1', 2)) == 5.0
        assert container.attributes == {'source': 'fuel_price'}

    def test_default_multiplier(self):
        parameters = DenseValueContainer(['gen1'], [1])
        parameters['gen1', 1] = 3.0
        container = ParameterContainer(parameters)
        assert container.multiplier_array['gen1', 1] == 1.0
        assert container.value(('gen1', 1)) == 3.0

    def test_shape_mismatch(self):
        with pytest.raises(DataShapeError):
            ParameterContainer(DenseValueContainer(['gen1'], [1, 2]), DenseValueContainer(['gen1'], [1]))
