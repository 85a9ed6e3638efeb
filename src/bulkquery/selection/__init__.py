from bulkquery.selection.tree import CheckState, SelectionNode, build_selection_tree, selected_targets

__all__ = ["CheckState", "SelectionNode", "build_selection_tree", "selected_targets"]
