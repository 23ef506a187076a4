"""
Простейший пример использования svm_engine.
Показывает обучение, предсказание, вероятности и экспорт модели.
"""

import numpy as np
from svm_engine import KernelType, SupportVectorMachine, SvmType

# Генерация простых данных: три облака точек
np.random.seed(42)
centers = np.array([[0.0, 0.0], [4.0, 0.0], [2.0, 4.0]])
X = np.vstack([c + np.random.randn(40, 2) for c in centers])  # 120 образцов, 2 признака
y = np.repeat([1, 2, 3], 40)  # метки классов

print("Simple SVM Engine Test")
print("=" * 30)
print(f"Data shape: {X.shape}")
print(f"Classes: {np.unique(y).tolist()}")

# Создаем и обучаем модель
print("\nTraining model...")
model = SupportVectorMachine(
    svm_type=SvmType.C_SVC,
    kernel_type=KernelType.RBF,
    C=1.0,
    gamma=0.5,
    probability=True,  # Platt scaling + попарное объединение
    verbose=True
)

model.fit(X, y)

# Предсказания
print("\nMaking predictions...")
y_pred = model.predict(X)
proba = model.predict_proba(X[:3])

# Оценка качества
accuracy = np.mean(y_pred == y)
print(f"\nAccuracy: {accuracy:.4f}")
print(f"Support vectors: {model.model.total_sv}/{len(y)}")
print(f"Support vectors per class: {model.model.n_sv.tolist()}")
print(f"Probabilities for first 3 samples:\n{np.round(proba, 3)}")

# Экспорт и загрузка
model.export("simple_model.xml")
restored = SupportVectorMachine().import_model("simple_model.xml")
print(f"Restored model agrees: {np.array_equal(restored.predict(X), y_pred)}")

print("\n" + "=" * 30)
print("Test completed successfully!")
print("\nUsage in your code:")
print("  from svm_engine import SupportVectorMachine")
print("  model = SupportVectorMachine(C=1.0, gamma=0.5)")
print("  model.fit(X_train, y_train)")
print("  predictions = model.predict(X_test)")
