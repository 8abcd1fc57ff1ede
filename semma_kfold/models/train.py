import os, joblib
from sklearn.pipeline import Pipeline

from semma_kfold.config import TARGET
from semma_kfold.features.pipeline import build_preprocessor
from semma_kfold.models.stepwise import StepwiseLogit


def fit_logistic(train, target=TARGET, interval=(), nominal=(), **stepwise_kw):
    """Preprocess + stepwise logit, fit on the training partition."""
    interval, nominal = list(interval), list(nominal)
    prep = build_preprocessor(interval, nominal)
    pipe = Pipeline([("prep", prep), ("model", StepwiseLogit(**stepwise_kw))])
    pipe.fit(train[interval + nominal], train[target].values)
    pipe.inputs_ = interval + nominal
    return pipe


def selection_tables(pipe):
    model = pipe.named_steps["model"]
    return model.steps_, model.coefficients_, model.fit_stats_


def save_model(pipe, path):
    os.makedirs(os.path.dirname(os.path.abspath(path)), exist_ok=True)
    joblib.dump(pipe, path)
    return path


def load_model(path):
    return joblib.load(path)
