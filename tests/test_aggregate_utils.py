import unittest

import numpy as np
import pandas as pd

from telemonitoring.aggregate_utils import (
    build_aggregation_plan, aggregate_by_day, aggregate_split,
)


class TestAggregation(unittest.TestCase):
    def setUp(self):
        self.df = pd.DataFrame({
            'subject_id': [1, 1, 1, 2, 2, 2],
            'day': pd.array([0, 0, 3, 0, 1, 1], dtype='Int64'),
            'sex': pd.Categorical(['male'] * 3 + ['female'] * 3),
            'note': ['a', 'b', 'c', 'd', 'e', 'e'],
            'hnr': [20.0, 22.0, 19.0, 30.0, 28.0, 32.0],
            'total_updrs': [10.0, 12.0, 11.0, 40.0, 41.0, 43.0],
        })

    def test_plan(self):
        plan = build_aggregation_plan(self.df)
        self.assertEqual(plan['keys'], ['subject_id', 'day'])
        self.assertEqual(plan['agg']['hnr'], ['mean', 'std'])
        self.assertEqual(plan['agg']['sex'], ['first'])
        self.assertEqual(plan['dropped'], ['note'])
        self.assertNotIn('subject_id', plan['agg'])

    def test_missing_keys(self):
        with self.assertRaises(KeyError):
            build_aggregation_plan(self.df.drop(columns='day'))

    def test_aggregate_by_day(self):
        out = aggregate_by_day(self.df)
        self.assertEqual(len(out), 4)
        self.assertEqual(out['n_recordings'].tolist(), [2, 1, 1, 2])
        self.assertEqual(out['hnr_mean'].tolist(), [21.0, 19.0, 30.0, 30.0])
        self.assertAlmostEqual(out['hnr_std'].iloc[0], np.sqrt(2.0))
        self.assertTrue(np.isnan(out['hnr_std'].iloc[1]))
        self.assertEqual(out['sex'].tolist(), ['male', 'male', 'female', 'female'])
        self.assertNotIn('note', out.columns)

    def test_missing_day_is_kept(self):
        df = pd.DataFrame({
            'subject_id': [1, 1, 2],
            'day': pd.array([0, None, 0], dtype='Int64'),
            'hnr': [20.0, 21.0, 30.0],
        })
        out = aggregate_by_day(df)
        self.assertEqual(len(out), 3)
        self.assertEqual(int(out['n_recordings'].sum()), 3)
        self.assertEqual(int(out['day'].isna().sum()), 1)
        self.assertEqual(out.loc[out['day'].isna(), 'hnr_mean'].tolist(), [21.0])

    def test_plan_columns_must_exist(self):
        plan = build_aggregation_plan(self.df)
        with self.assertRaises(KeyError):
            aggregate_by_day(self.df.drop(columns='hnr'), plan)

    def test_aggregate_split_shares_plan(self):
        train_df, test_df = self.df.iloc[:3], self.df.iloc[3:]
        train_agg, test_agg = aggregate_split(train_df, test_df)
        self.assertEqual(list(train_agg.columns), list(test_agg.columns))
        self.assertEqual(len(train_agg), 2)
        self.assertEqual(len(test_agg), 2)
        # 'note' is constant per day in test but varies in train, so it is dropped
        self.assertNotIn('note', test_agg.columns)


if __name__ == '__main__':
    unittest.main()
