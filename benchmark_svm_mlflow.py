import os
import sys
import time
import warnings
import numpy as np
import mlflow
from tqdm.auto import tqdm
from sklearn.datasets import load_breast_cancer, load_digits, load_iris, load_wine, make_friedman1
from sklearn.metrics import accuracy_score, f1_score, mean_squared_error
from sklearn.model_selection import train_test_split
from sklearn.preprocessing import StandardScaler
from sklearn.svm import SVC, SVR
sys.path.insert(0, os.path.dirname(os.path.abspath(__file__)))
from svm_engine import ConvergenceWarning, KernelType, SupportVectorMachine, SvmType

# --- КОНФИГУРАЦИЯ ---
CONFIG = {
    "test_size": 0.3,
    "random_state": 42,
    "use_scaler": True,

    # Параметры SVM (одинаковые для svm_engine и sklearn)
    "C": 1.0,
    "gamma": "scale",     # "scale" -> 1 / (n_features * X.var()), как в sklearn
    "epsilon": 0.1,       # ширина трубки для SVR
    "eps": 1e-3,          # критерий остановки SMO
    "cache_size": 200.0,  # МБ
    "shrinking": True,
    "probability": False,
    "n_jobs": 4,

    # MLFLOW Settings
    "mlflow_tracking_uri": "http://localhost:5000",
    "experiment_name": "SVM_Engine_vs_sklearn",
    "s3_endpoint": "http://localhost:9000",
    "s3_access_key": "minio_root",
    "s3_secret_key": "minio_password"
}

# СПИСОК ДАТАСЕТОВ ДЛЯ СРАВНЕНИЯ
DATASETS = {
    "iris": (load_iris, "classification"),
    "wine": (load_wine, "classification"),
    "breast_cancer": (load_breast_cancer, "classification"),
    "digits": (load_digits, "classification"),
    "friedman1": (lambda: make_friedman1(n_samples=500, random_state=0), "regression"),
}

# Настройка окружения для MLFlow/Boto3
os.environ["MLFLOW_TRACKING_URI"] = CONFIG["mlflow_tracking_uri"]
os.environ["MLFLOW_S3_ENDPOINT_URL"] = CONFIG["s3_endpoint"]
os.environ["AWS_ACCESS_KEY_ID"] = CONFIG["s3_access_key"]
os.environ["AWS_SECRET_ACCESS_KEY"] = CONFIG["s3_secret_key"]
os.environ["AWS_DEFAULT_REGION"] = "us-east-1"
os.environ["MLFLOW_S3_IGNORE_TLS"] = "true"


def load_data(name):
    loader, task = DATASETS[name]
    data = loader()
    X, y = (data.data, data.target) if hasattr(data, "data") else data
    stratify = y if task == "classification" else None
    X_train, X_test, y_train, y_test = train_test_split(
        X, y, test_size=CONFIG["test_size"], random_state=CONFIG["random_state"], stratify=stratify
    )
    if CONFIG["use_scaler"]:
        scaler = StandardScaler()
        X_train = scaler.fit_transform(X_train)
        X_test = scaler.transform(X_test)
    return X_train, X_test, y_train, y_test, task


def resolve_gamma(X):
    """Числовое значение gamma, чтобы обе реализации решали одну задачу."""
    if CONFIG["gamma"] == "scale":
        return float(1.0 / (X.shape[1] * X.var()))
    return float(CONFIG["gamma"])


def compute_metrics(task, y_test, y_pred):
    if task == "classification":
        return {
            "accuracy": accuracy_score(y_test, y_pred),
            "f1_macro": f1_score(y_test, y_pred, average="macro"),
        }
    return {"mse": mean_squared_error(y_test, y_pred)}


def run_engine(X_train, X_test, y_train, y_test, task, gamma, dataset_name):
    """Обучает svm_engine и логирует результат в MLflow."""
    svm_type = SvmType.C_SVC if task == "classification" else SvmType.EPSILON_SVR
    clf = SupportVectorMachine(
        svm_type=svm_type,
        kernel_type=KernelType.RBF,
        gamma=gamma,
        C=CONFIG["C"],
        p=CONFIG["epsilon"],
        eps=CONFIG["eps"],
        cache_size=CONFIG["cache_size"],
        shrinking=CONFIG["shrinking"],
        probability=CONFIG["probability"],
        n_jobs=CONFIG["n_jobs"],
    )

    with mlflow.start_run(run_name=f"svm_engine_on_{dataset_name}"):
        mlflow.log_param("dataset", dataset_name)
        mlflow.log_param("implementation", "svm_engine")
        mlflow.log_param("svm_type", svm_type.name)
        mlflow.log_param("C", CONFIG["C"])
        mlflow.log_param("gamma", gamma)
        mlflow.log_param("eps", CONFIG["eps"])
        mlflow.log_param("shrinking", CONFIG["shrinking"])
        mlflow.log_param("n_jobs", CONFIG["n_jobs"])

        with warnings.catch_warnings(record=True) as caught:
            warnings.simplefilter("always", ConvergenceWarning)
            start = time.perf_counter()
            clf.fit(X_train, y_train)
            fit_time = time.perf_counter() - start
        if caught:
            print(f"    Warning: {caught[0].message}")

        y_pred = clf.predict(X_test)
        metrics = compute_metrics(task, y_test, y_pred)
        metrics.update({
            "fit_time_sec": fit_time,
            "n_support_vectors": clf.model.total_sv,
            "total_iterations": clf.model.total_iterations,
            "converged": float(clf.model.converged),
        })
        mlflow.log_metrics(metrics)

        model_filename = f"svm_engine_{dataset_name}.xml"
        clf.export(model_filename)
        mlflow.log_artifact(model_filename)
    return metrics


def run_sklearn(X_train, X_test, y_train, y_test, task, gamma, dataset_name):
    """Обучает sklearn SVC/SVR (тот же LIBSVM-алгоритм) как baseline."""
    if task == "classification":
        clf = SVC(C=CONFIG["C"], kernel="rbf", gamma=gamma, tol=CONFIG["eps"],
                  cache_size=CONFIG["cache_size"], shrinking=CONFIG["shrinking"],
                  probability=CONFIG["probability"])
    else:
        clf = SVR(C=CONFIG["C"], kernel="rbf", gamma=gamma, epsilon=CONFIG["epsilon"],
                  tol=CONFIG["eps"], cache_size=CONFIG["cache_size"], shrinking=CONFIG["shrinking"])

    with mlflow.start_run(run_name=f"sklearn_on_{dataset_name}"):
        mlflow.log_param("dataset", dataset_name)
        mlflow.log_param("implementation", "sklearn")
        mlflow.log_param("classifier", type(clf).__name__)
        mlflow.log_param("C", CONFIG["C"])
        mlflow.log_param("gamma", gamma)

        start = time.perf_counter()
        clf.fit(X_train, y_train)
        fit_time = time.perf_counter() - start

        y_pred = clf.predict(X_test)
        metrics = compute_metrics(task, y_test, y_pred)
        metrics.update({
            "fit_time_sec": fit_time,
            "n_support_vectors": int(np.sum(clf.n_support_)) if task == "classification"
            else len(clf.support_),
        })
        mlflow.log_metrics(metrics)
    return metrics


def main():
    """
    Главная функция бенчмарка.

    Для каждого датасета обучает svm_engine и sklearn с одинаковыми
    параметрами и сравнивает качество, число опорных векторов и время.
    """
    print("Start Benchmark: svm_engine vs sklearn")
    print(f"  C = {CONFIG['C']}, gamma = {CONFIG['gamma']}, eps = {CONFIG['eps']}")
    mlflow.set_experiment(CONFIG["experiment_name"])
    all_results = {}

    for dataset_name in tqdm(DATASETS, desc="Datasets"):
        print(f"\n{'='*40}")
        print(f"Processing: {dataset_name}")
        print(f"{'='*40}")

        try:
            X_train, X_test, y_train, y_test, task = load_data(dataset_name)
            gamma = resolve_gamma(X_train)
            print(f"  Train: {X_train.shape}, Test: {X_test.shape}, task: {task}")

            engine_metrics = run_engine(X_train, X_test, y_train, y_test, task, gamma, dataset_name)
            sklearn_metrics = run_sklearn(X_train, X_test, y_train, y_test, task, gamma, dataset_name)

            all_results[f"svm_engine_{dataset_name}"] = engine_metrics
            all_results[f"sklearn_{dataset_name}"] = sklearn_metrics
            print(f"  svm_engine: {engine_metrics}")
            print(f"  sklearn:    {sklearn_metrics}")
        except Exception as e:
            print(f"Error processing {dataset_name}: {e}")
            import traceback
            traceback.print_exc()
            continue

    print("\n" + "="*80)
    print("SUMMARY - All Results")
    print("="*80)
    print(f"{'Run':<35} {'Quality':<12} {'nSV':<8} {'Fit time':<10}")
    print("-"*65)
    for name, m in all_results.items():
        quality = m.get("accuracy", m.get("mse", 0.0))
        print(f"{name:<35} {quality:<12.4f} {m['n_support_vectors']:<8} {m['fit_time_sec']:<10.3f}")


if __name__ == "__main__":
    main()
