from semma_kfold.report.document import Report
