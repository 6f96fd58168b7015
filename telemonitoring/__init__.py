"""
telemonitoring — Data preparation for the Parkinson's telemonitoring voice dataset.

Quick imports:
    from telemonitoring.data_utils import load_telemonitoring, get_X_y_groups, GROUP_COL
    from telemonitoring.split_utils import groupwise_split, split_frame, GroupwiseShuffleSplit
    from telemonitoring.aggregate_utils import build_aggregation_plan, aggregate_split
"""
